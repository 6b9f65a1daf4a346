"""Select which upstream file changes take part in an apply run."""

from __future__ import annotations

import posixpath
from typing import Iterable, List, Sequence

from wcmatch import glob

from ..models import ChangeKind, FileChange

_WILDCARDS = ("*", "?")
# Path-aware globbing: ``*`` stops at ``/`` and ``**`` spans directories.
_GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB


def normalize_path(value: str) -> str:
    """Collapse ``./``, ``..`` and duplicate separators in a repo path."""
    cleaned = value.replace("\\", "/").strip()
    if not cleaned:
        return ""
    return posixpath.normpath(cleaned)


def pattern_matches(path: str, pattern: str) -> bool:
    """Glob-match when ``pattern`` has a wildcard, otherwise substring match."""
    if any(token in pattern for token in _WILDCARDS):
        return glob.globmatch(path, pattern, flags=_GLOB_FLAGS)
    return pattern in path


def _exact_match(change: FileChange, path: str, files: Sequence[str]) -> bool:
    old_path = normalize_path(change.old_path) if change.kind is ChangeKind.RENAMED and change.old_path else None
    for entry in files:
        if not entry:
            continue
        if path.endswith(entry) or (old_path is not None and old_path == entry):
            return True
    return False


def filter_changes(
    changes: Iterable[FileChange],
    *,
    files: Sequence[str] | None = None,
    include: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
) -> List[FileChange]:
    """Apply exact-file, exclude, and include rules in that order of precedence.

    An explicitly requested file is always kept, exclude patterns prune the
    remainder, and include patterns (when given) narrow what is left.
    """

    changes = list(changes)
    exact = [normalize_path(entry) for entry in files or ()]
    include = list(include or ())
    exclude = list(exclude or ())
    if not (exact or include or exclude):
        return changes

    selected: List[FileChange] = []
    for change in changes:
        path = normalize_path(change.path)
        if exact and _exact_match(change, path, exact):
            selected.append(change)
            continue
        if exclude and any(pattern_matches(path, pattern) for pattern in exclude):
            continue
        if include and not any(pattern_matches(path, pattern) for pattern in include):
            continue
        selected.append(change)
    return selected


__all__ = ["filter_changes", "normalize_path", "pattern_matches"]
