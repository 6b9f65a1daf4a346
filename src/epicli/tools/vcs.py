"""Minimal git helpers.

The helpers below provide just enough structure to read upstream history,
produce a diff for a commit range, and probe a working tree for pending edits.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence

from ..config import DEFAULT_IGNORED_PATHS
from ..models import CommitRef

LOGGER = logging.getLogger(__name__)

# Object id of the empty tree; used as the diff base for root commits.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"--format=%H{_FIELD_SEP}%aI{_FIELD_SEP}%B{_RECORD_SEP}"


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


def _run(args: Sequence[str], *, cwd: Path | None, check: bool = True) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    try:
        process = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=False,
            check=False,
        )
    except FileNotFoundError as error:
        raise GitError("git executable not found on PATH") from error
    stdout = process.stdout.decode("utf-8", errors="surrogateescape") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
    if check and result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
        raise GitError(f"git {' '.join(args)} failed: {message}")
    return result


def exclude_pathspecs(paths: Sequence[str]) -> List[str]:
    """Turn plain paths/globs into ``:!`` exclusion pathspecs."""
    return [f":!{path}" for path in paths if path]


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def clone(cls, url: str, destination: Path | str) -> "GitRepository":
        """Clone ``url`` into ``destination`` and return the new repository."""

        target = Path(destination)
        target.parent.mkdir(parents=True, exist_ok=True)
        _run(["clone", url, str(target)], cwd=None)
        return cls(target)

    # ------------------------------------------------------------------ git IO
    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return _run(list(args), cwd=self.root, check=check)

    def pull(self) -> None:
        self.git("pull", "--ff-only")

    def resolve(self, ref: str) -> str | None:
        """Return the full hash for ``ref`` or ``None`` when it does not exist."""

        result = self.git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    # ------------------------------------------------------------------ history
    def log(self, *, base: str | None = None, head: str = "HEAD") -> List[CommitRef]:
        """Return commits reachable from ``head`` but not ``base``, oldest first."""

        revision = f"{base}..{head}" if base else head
        result = self.git("log", "--reverse", _LOG_FORMAT, revision)
        commits: List[CommitRef] = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            parts = record.split(_FIELD_SEP, 2)
            if len(parts) != 3:
                LOGGER.debug("Ignoring unparseable log record %r", record[:80])
                continue
            commit_hash, date, message = parts
            commits.append(CommitRef(hash=commit_hash.strip(), date=date.strip(), message=message.strip()))
        return commits

    # ----------------------------------------------------------- diff helpers
    def diff_range(self, first: str, last: str, *, ignored: Sequence[str] = DEFAULT_IGNORED_PATHS) -> str:
        """Return the unified diff covering commits ``first`` through ``last``.

        A single commit is rendered with ``git show``; wider ranges diff from
        the parent of ``first`` (or the empty tree for a root commit).
        """

        pathspecs = exclude_pathspecs(ignored)
        if first == last:
            result = self.git("show", "--format=", "--no-color", last, "--", ".", *pathspecs)
            return result.stdout

        base = self.resolve(f"{first}^") or EMPTY_TREE
        result = self.git("diff", "--no-color", base, last, "--", ".", *pathspecs)
        return result.stdout


def working_tree_is_clean(directory: Path | str) -> bool:
    """Probe ``directory`` for uncommitted changes.

    Directories that are not git repositories, or whose status cannot be
    read, are reported as clean so the caller can still proceed.
    """

    try:
        result = _run(["status", "--porcelain"], cwd=Path(directory))
    except (GitError, OSError) as error:
        LOGGER.warning("Unable to check git working tree at %s: %s", directory, error)
        return True
    return not result.stdout.strip()


__all__ = [
    "DEFAULT_IGNORED_PATHS",
    "EMPTY_TREE",
    "GitError",
    "GitRepository",
    "exclude_pathspecs",
    "working_tree_is_clean",
]
