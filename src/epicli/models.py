"""Typed records passed between the diff, filter, and materialize stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence


class ChangeKind(str, Enum):
    """Disposition of a file within an upstream diff."""

    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"


@dataclass(slots=True)
class FileChange:
    """Single file entry recovered from one ``diff --git`` section.

    ``old_path`` is only populated for sections that carried ``rename from``
    / ``rename to`` lines; a rename with edits keeps it while being reported
    as :attr:`ChangeKind.MODIFIED`.
    """

    path: str
    kind: ChangeKind
    old_path: str | None = None
    raw_content: str | None = None
    binary: bool = False

    @property
    def from_rename(self) -> bool:
        return self.old_path is not None


@dataclass(slots=True, frozen=True)
class CommitRef:
    """Point in the upstream history."""

    hash: str
    date: str
    message: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass(slots=True)
class UpdateBatch:
    """Group of upstream commits applied together by ``epicli update``."""

    label: str
    commits: List[CommitRef]
    instructions: str = ""


CompletionCallback = Callable[[], None]


@dataclass(slots=True)
class ApplyRequest:
    """Everything a single ``apply_changes`` invocation needs."""

    working_dir: Path
    upstream: str
    commits: Sequence[CommitRef]
    files: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    instructions: str = ""
    on_complete: Optional[CompletionCallback] = None
    assume_yes: bool = False

    @property
    def has_filters(self) -> bool:
        return bool(self.files or self.include or self.exclude)


__all__ = [
    "ApplyRequest",
    "ChangeKind",
    "CommitRef",
    "CompletionCallback",
    "FileChange",
    "UpdateBatch",
]
