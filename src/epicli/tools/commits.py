"""Pick the upstream commits an apply or update run should cover."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Sequence

import typer

from ..config import Bookmark
from ..models import CommitRef, UpdateBatch
from .vcs import GitRepository

SKIP_CI_MARKER = "[skip ci]"
LATEST_LABEL = "Latest commits"


class CommitRangeError(RuntimeError):
    """Raised when the requested commit range is empty or unknown."""


def select_commit_range(repo: GitRepository, *, base: str | None = None, head: str | None = None) -> List[CommitRef]:
    """Return commits after ``base`` up to and including ``head``, oldest first.

    Without ``base`` the whole history is used; without ``head`` the range
    ends at ``HEAD``.
    """

    base_hash = None
    if base:
        base_hash = repo.resolve(base)
        if base_hash is None:
            raise CommitRangeError(f"The commit {base} does not exist in the upstream repository.")
    head_hash = "HEAD"
    if head:
        resolved_head = repo.resolve(head)
        if resolved_head is None:
            raise CommitRangeError(f"The commit {head} does not exist in the upstream repository.")
        head_hash = resolved_head

    commits = repo.log(base=base_hash, head=head_hash)
    if not commits:
        raise CommitRangeError("No commits found in repository")
    return commits


def _commit_day(commit: CommitRef) -> str:
    try:
        return datetime.fromisoformat(commit.date).date().isoformat()
    except ValueError:
        return commit.date[:10]


def _subject(commit: CommitRef) -> str:
    message = commit.message.strip()
    return message.splitlines()[0] if message else ""


def format_commit(commit: CommitRef) -> str:
    """Render ``commit`` as ``<short hash> <YYYY-MM-DD> <subject>``."""
    return f"{commit.short_hash} {_commit_day(commit)} {_subject(commit)}"


def print_commits(commits: Iterable[CommitRef]) -> None:
    for commit in commits:
        typer.secho(f"   {format_commit(commit)}", fg=typer.colors.YELLOW)


def plan_updates(commits: Sequence[CommitRef], bookmarks: Sequence[Bookmark]) -> List[UpdateBatch]:
    """Group ``commits`` into batches that each end at a bookmarked commit.

    Commits tagged ``[skip ci]`` are left out unless they are bookmarks
    themselves.  Anything after the last bookmark forms a trailing
    ``Latest commits`` batch.
    """

    by_hash = {bookmark.commit: bookmark for bookmark in bookmarks}
    batches: List[UpdateBatch] = []
    pending: List[CommitRef] = []
    for commit in commits:
        bookmark = by_hash.get(commit.hash)
        if bookmark is not None or SKIP_CI_MARKER not in commit.message:
            pending.append(commit)
        if bookmark is not None:
            batches.append(UpdateBatch(label=bookmark.description, commits=pending, instructions=bookmark.instructions))
            pending = []
    if pending:
        batches.append(UpdateBatch(label=LATEST_LABEL, commits=pending))
    return batches


__all__ = [
    "CommitRangeError",
    "LATEST_LABEL",
    "SKIP_CI_MARKER",
    "format_commit",
    "plan_updates",
    "print_commits",
    "select_commit_range",
]
