"""Resolve upstream repository references and keep local clones of them."""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import typer

from ..utils.slug import safe_dirname
from .vcs import GitError, GitRepository

LOGGER = logging.getLogger(__name__)

CACHE_DIRNAME = "epicli"
_REMOTE_PREFIXES = ("http://", "https://", "git@", "ssh://", "git://")


class RepoResolutionError(ValueError):
    """Raised when a repository reference cannot be interpreted."""


@dataclass(slots=True, frozen=True)
class RepoSource:
    """Where an upstream repository lives and where it is read from locally."""

    local_path: Path
    remote_url: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.remote_url is not None


def default_cache_root() -> Path:
    return Path(tempfile.gettempdir()) / CACHE_DIRNAME


def resolve_repo_source(reference: str, *, key: str | None = None, cache_root: Path | None = None) -> RepoSource:
    """Interpret ``reference`` as a URL, a local directory, or ``org/repo``."""

    reference = reference.strip()
    if not reference:
        raise RepoResolutionError("Repository reference is empty.")

    if reference.startswith(_REMOTE_PREFIXES):
        root = cache_root or default_cache_root()
        clone_key = key or str(int(time.time() * 1000))
        return RepoSource(local_path=root / safe_dirname(reference) / clone_key, remote_url=reference)

    candidate = Path(reference).expanduser()
    if candidate.exists():
        return RepoSource(local_path=candidate.resolve())

    parts = reference.split("/")
    if len(parts) == 2 and all(parts):
        return resolve_repo_source(f"https://github.com/{reference}.git", key=key, cache_root=cache_root)

    raise RepoResolutionError(
        f"Unable to resolve repository path: {reference}. "
        'Path should be either a local directory, a full URL, or a GitHub repository in format "organization/repo"'
    )


def open_repo(source: RepoSource) -> GitRepository:
    """Return a repository for ``source``, cloning or refreshing remote ones."""

    if not source.is_remote:
        return GitRepository(source.local_path)

    if (source.local_path / ".git").exists():
        repo = GitRepository(source.local_path)
        LOGGER.debug("Refreshing cached clone at %s", source.local_path)
        repo.pull()
        return repo

    typer.echo(f"Cloning {source.remote_url} into a temporary directory: {typer.style(str(source.local_path), dim=True)}")
    return GitRepository.clone(source.remote_url or "", source.local_path)


@contextmanager
def checkout_upstream(reference: str, *, key: str | None = None, cache_root: Path | None = None) -> Iterator[GitRepository]:
    """Yield a repository for ``reference``.

    Remote clones made without a ``key`` are throwaway and removed on exit;
    keyed clones stay cached for the next run.
    """

    source = resolve_repo_source(reference, key=key, cache_root=cache_root)
    repo = open_repo(source)
    try:
        yield repo
    finally:
        if source.is_remote and key is None:
            shutil.rmtree(source.local_path, ignore_errors=True)


__all__ = [
    "CACHE_DIRNAME",
    "GitError",
    "RepoResolutionError",
    "RepoSource",
    "checkout_upstream",
    "default_cache_root",
    "open_repo",
    "resolve_repo_source",
]
