"""Parse ``git diff`` output into :class:`~epicli.models.FileChange` records.

Parsing happens in two passes.  :func:`tokenize_sections` walks the raw text
once and cuts it into ``diff --git`` sections; :func:`extract_change` then
turns one section into a record, or ``None`` when the section header cannot
be understood.  Malformed sections are skipped rather than reported so a
single odd entry never blocks the rest of an update.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Sequence

from ..models import ChangeKind, FileChange

LOGGER = logging.getLogger(__name__)

SECTION_PREFIX = "diff --git "

_HEADER_PATHS_RE = re.compile(r"a/(.+) b/(.+)")
_EXTENDED_HEADER_PREFIXES = (
    "index ",
    "old mode",
    "new mode",
    "new file mode",
    "deleted file mode",
    "similarity index",
    "dissimilarity index",
    "rename from",
    "rename to",
    "copy from",
    "copy to",
)
_PATCH_HEADER_PREFIXES = ("index ", "rename from", "rename to")
_BINARY_MARKERS = ("Binary files ", "GIT binary patch")


@dataclass(slots=True)
class DiffSection:
    """Lines belonging to one ``diff --git`` block, header line included."""

    start_line: int
    lines: List[str]

    @property
    def header(self) -> str:
        return self.lines[0][len(SECTION_PREFIX):]


def tokenize_sections(diff_text: str) -> List[DiffSection]:
    """Split ``diff_text`` into sections at every ``diff --git`` line.

    Text before the first section (for example the commit preamble printed by
    ``git show``) is dropped, as is the empty line produced by a trailing
    newline.
    """

    lines = diff_text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    sections: List[DiffSection] = []
    current: DiffSection | None = None
    for number, line in enumerate(lines):
        if line.startswith(SECTION_PREFIX):
            current = DiffSection(start_line=number, lines=[line])
            sections.append(current)
        elif current is not None:
            current.lines.append(line)
    return sections


def find_prefix(lines: Sequence[str], prefix: str) -> int:
    for index, line in enumerate(lines):
        if line.startswith(prefix):
            return index
    return -1


def is_content_line(line: str) -> bool:
    if line.startswith("+"):
        return not line.startswith("+++")
    if line.startswith("-"):
        return not line.startswith("---")
    return False


def _added_content(lines: Sequence[str], before: str, after: str) -> str:
    new_mode = find_prefix(lines, "new file mode")
    index_line = find_prefix(lines, "index")
    header = [f"diff --git a/{before} b/{after}"]
    if new_mode >= 0:
        header.append(lines[new_mode])
    if index_line >= 0:
        header.append(lines[index_line])
    header.extend(["--- /dev/null", f"+++ b/{after}"])

    plus_marker = find_prefix(lines, "+++")
    if plus_marker >= 0:
        body = list(lines[plus_marker + 1:])
    else:
        start = new_mode + 1 if new_mode >= 0 else 1
        body = [line for line in lines[start:] if line.startswith("+")]
    return "\n".join(header + body) + "\n"


def _patch_content(lines: Sequence[str], before: str, after: str) -> str:
    header = [f"diff --git a/{before} b/{after}"]
    header.extend(line for line in lines if line.startswith(_PATCH_HEADER_PREFIXES))

    minus_marker = find_prefix(lines, "---")
    plus_marker = find_prefix(lines, "+++")
    if minus_marker >= 0:
        header.append(lines[minus_marker])
    if plus_marker >= 0:
        header.append(lines[plus_marker])
        body = list(lines[plus_marker + 1:])
    else:
        header_end = 1
        while header_end < len(lines) and lines[header_end].startswith(_EXTENDED_HEADER_PREFIXES):
            header_end += 1
        body = list(lines[header_end:])
    return "\n".join(header + body) + "\n"


def extract_change(section: DiffSection) -> FileChange | None:
    """Build a :class:`FileChange` from ``section`` or ``None`` if malformed."""

    match = _HEADER_PATHS_RE.search(section.header)
    if match is None:
        LOGGER.debug("Skipping diff section at line %d: unrecognised header %r", section.start_line, section.header)
        return None
    before, after = match.group(1), match.group(2)
    lines = section.lines
    binary = any(line.startswith(_BINARY_MARKERS) for line in lines)

    if find_prefix(lines, "deleted file mode") >= 0:
        return FileChange(path=before, kind=ChangeKind.DELETED, binary=binary)

    if find_prefix(lines, "new file mode") >= 0:
        return FileChange(
            path=after,
            kind=ChangeKind.ADDED,
            raw_content=_added_content(lines, before, after),
            binary=binary,
        )

    content = _patch_content(lines, before, after)
    rename_from = find_prefix(lines, "rename from")
    if rename_from >= 0:
        rename_to = find_prefix(lines, "rename to")
        old_path = lines[rename_from][len("rename from "):] or before
        new_path = lines[rename_to][len("rename to "):] if rename_to >= 0 else ""
        edited = any(is_content_line(line) for line in lines)
        return FileChange(
            path=new_path or after,
            old_path=old_path,
            kind=ChangeKind.MODIFIED if edited else ChangeKind.RENAMED,
            raw_content=content,
            binary=binary,
        )

    return FileChange(path=after, kind=ChangeKind.MODIFIED, raw_content=content, binary=binary)


def parse_diff(diff_text: str) -> List[FileChange]:
    """Return the file changes described by ``diff_text`` in source order."""

    changes: List[FileChange] = []
    for section in tokenize_sections(diff_text):
        change = extract_change(section)
        if change is not None:
            changes.append(change)
    return changes


__all__ = [
    "DiffSection",
    "extract_change",
    "find_prefix",
    "is_content_line",
    "parse_diff",
    "tokenize_sections",
]
