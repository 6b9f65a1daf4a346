"""Write upstream changes into a working project as files, deletions, and patches.

:func:`materialize` walks the changes in a fixed order (additions, deletions,
then modifications and renames).  New files are written directly unless the
target already exists, in which case the upstream content is quarantined as
a ``.patch`` artifact instead of overwriting local work.  With
``dry_run=True`` the same decisions are made and reported without touching
the filesystem.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Sequence, Tuple

import typer

from ..models import ChangeKind, CompletionCallback, FileChange
from ..prompts import render_next_steps
from .diff_parser import find_prefix, is_content_line
from .filters import normalize_path

LOGGER = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico", ".bmp", ".tiff"})
NO_NEWLINE_MARKER = "\\ No newline at end of file"

_LEADING_DOT_RE = re.compile(r"^\.")


@dataclass(slots=True)
class ManifestRule:
    """Package manifest whose version-tracking lines never reach a patch."""

    path: str = "package.json"
    tokens: Tuple[str, ...] = ('"epic-stack"', '"head"', '"date"')


@dataclass(slots=True)
class MaterializeReport:
    """Outcome of one :func:`materialize` pass."""

    dry_run: bool
    added: List[str] = field(default_factory=list)
    redirected: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    patches: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)
    log: List[str] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "deleted": len(self.deleted),
            "modified": len(self.modified),
            "redirected": len(self.redirected),
            "patches": len(self.patches),
            "errors": len(self.errors),
        }

    @property
    def ok(self) -> bool:
        return not self.errors


def patch_filename(path: str) -> str:
    """Map a repository path onto a flat, deterministic ``.patch`` name."""
    return f"{_LEADING_DOT_RE.sub('_.', path).replace('/', '_')}.patch"


def is_image_file(path: str) -> bool:
    return PurePosixPath(path).suffix.lower() in IMAGE_EXTENSIONS


def extract_added_content(raw_content: str) -> str:
    """Recover file text from an added-file diff: ``+`` lines after ``+++``."""
    lines = raw_content.split("\n")
    start = find_prefix(lines, "+++") + 1
    body: List[str] = []
    missing_newline = False
    for line in lines[start:]:
        if line.startswith("+"):
            body.append(line[1:])
        elif line.startswith(NO_NEWLINE_MARKER):
            missing_newline = True
    if not body:
        return ""
    text = "\n".join(body)
    return text if missing_newline else f"{text}\n"


def strip_tracking_lines(raw_content: str, tokens: Sequence[str]) -> str | None:
    """Drop lines mentioning any of ``tokens``.

    Returns ``None`` when nothing but header and context lines would remain.
    """
    kept = [line for line in raw_content.split("\n") if not any(token in line.strip() for token in tokens)]
    if not any(is_content_line(line) for line in kept):
        return None
    return "\n".join(kept)


class _Console:
    """Echo action lines and keep a plain-text copy on the report."""

    def __init__(self, report: MaterializeReport) -> None:
        self._report = report

    def header(self, label: str, count: int, color: str) -> None:
        text = f"{label} {count}"
        self._report.log.append(text)
        typer.secho(text, fg=color, bold=True)

    def action(self, code: str, text: str, color: str) -> None:
        self._report.log.append(f"{code} {text}")
        typer.echo(f"{typer.style(code, fg=color)} {text}")

    def note(self, text: str) -> None:
        self._report.log.append(f"    {text}")
        typer.secho(f"    {text}", dim=True)

    def failure(self, path: str, verb: str, error: BaseException) -> None:
        message = f"Failed to {verb}: {error}"
        self._report.errors.append((path, message))
        self._report.log.append(f"    ✗ {message}")
        typer.secho(f"    ✗ {message}", fg=typer.colors.RED)
        LOGGER.warning("Failed to %s %s: %s", verb, path, error)


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _write_text(path: Path, content: str) -> None:
    # Diff text is decoded with surrogateescape; encode the same way to keep raw bytes.
    path.write_bytes(content.encode("utf-8", errors="surrogateescape"))


def _write_patch(
    change: FileChange,
    *,
    patches_dir: Path,
    manifest: ManifestRule | None,
    report: MaterializeReport,
    console: _Console,
) -> None:
    if is_image_file(change.path):
        console.note("(Skipping patch for image file)")
        report.skipped.append(change.path)
        return

    content = change.raw_content or ""
    if manifest is not None and normalize_path(change.path) == normalize_path(manifest.path):
        stripped = strip_tracking_lines(content, manifest.tokens)
        if stripped is None:
            console.note("(Only version tracking changed, skipping patch)")
            report.skipped.append(change.path)
            return
        content = stripped

    name = patch_filename(change.path)
    try:
        _write_text(patches_dir / name, content)
    except OSError as error:
        console.failure(change.path, "write patch", error)
        return
    report.patches.append(name)


def _delete(target: Path) -> None:
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    else:
        target.unlink()


def materialize(
    changes: Iterable[FileChange],
    working_dir: Path | str,
    patches_dir: Path | str,
    *,
    dry_run: bool,
    instructions: str = "",
    on_complete: CompletionCallback | None = None,
    manifest: ManifestRule | None = None,
) -> MaterializeReport:
    """Apply ``changes`` to ``working_dir``; patches land in ``patches_dir``.

    Failures are isolated per file and collected on the returned report.  The
    completion callback runs only after a real (non dry-run) pass and its
    exceptions propagate to the caller.
    """

    working_dir = Path(working_dir)
    patches_dir = Path(patches_dir)
    manifest = manifest if manifest is not None else ManifestRule()
    changes = list(changes)

    report = MaterializeReport(dry_run=dry_run)
    console = _Console(report)

    to_add = [change for change in changes if change.kind is ChangeKind.ADDED]
    to_delete = [change for change in changes if change.kind is ChangeKind.DELETED]
    to_modify = [change for change in changes if change.kind in (ChangeKind.MODIFIED, ChangeKind.RENAMED)]

    # Added files whose target already exists are surfaced as patches instead.
    moved_to_patch = [change for change in to_add if _exists(working_dir / change.path)]
    moved_ids = {id(change) for change in moved_to_patch}

    if not dry_run:
        patches_dir.mkdir(parents=True, exist_ok=True)

    console.header("Adding", len(to_add) - len(moved_to_patch), typer.colors.GREEN)
    for change in to_add:
        if id(change) in moved_ids:
            continue
        console.action("A", change.path, typer.colors.GREEN)
        if change.binary:
            console.note("(Skipping binary file)")
            report.skipped.append(change.path)
            continue
        if dry_run:
            report.added.append(change.path)
            continue

        target = working_dir / change.path
        try:
            if _exists(target):
                moved_to_patch.append(change)
                moved_ids.add(id(change))
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            _write_text(target, extract_added_content(change.raw_content or ""))
        except OSError as error:
            console.failure(change.path, "create", error)
            continue
        report.added.append(change.path)

    report.redirected.extend(change.path for change in moved_to_patch)

    console.header("Deleting", len(to_delete), typer.colors.RED)
    for change in to_delete:
        console.action("D", change.path, typer.colors.RED)
        if dry_run:
            report.deleted.append(change.path)
            continue

        target = working_dir / change.path
        if not _exists(target):
            console.note("(Already absent)")
            continue
        try:
            _delete(target)
        except OSError as error:
            console.failure(change.path, "delete", error)
            continue
        report.deleted.append(change.path)

    console.header("Modifying", len(to_modify) + len(moved_to_patch), typer.colors.CYAN)
    for change in to_modify:
        if change.kind is ChangeKind.RENAMED:
            console.action("R", f"{change.old_path} → {change.path}", typer.colors.MAGENTA)
        else:
            console.action("M", change.path, typer.colors.CYAN)
        report.modified.append(change.path)
        if not dry_run:
            _write_patch(change, patches_dir=patches_dir, manifest=manifest, report=report, console=console)

    for change in moved_to_patch:
        console.action("M", change.path, typer.colors.CYAN)
        report.modified.append(change.path)
        if not dry_run:
            _write_patch(change, patches_dir=patches_dir, manifest=None, report=report, console=console)

    if dry_run:
        return report

    if on_complete is not None:
        on_complete()

    if to_modify or moved_to_patch:
        _print_next_steps(patches_dir, working_dir, instructions)
    return report


def _print_next_steps(patches_dir: Path, working_dir: Path, instructions: str) -> None:
    typer.secho("\nNext steps:", bold=True)
    typer.echo("  1. Review the files that have been created. Delete any that are not needed.")
    typer.echo(
        "  2. Using an AI editor, ask it to apply the patches in the "
        f"{typer.style(patches_dir.name, bold=True)} directory. Here is a sample prompt:"
    )
    typer.echo("\n---COPY-AND-RUN-THIS-PROMPT---")
    typer.secho(render_next_steps(patches_dir, working_dir, instructions), fg=typer.colors.BRIGHT_WHITE)
    typer.echo("------------------------------\n")


__all__ = [
    "IMAGE_EXTENSIONS",
    "ManifestRule",
    "MaterializeReport",
    "extract_added_content",
    "is_image_file",
    "materialize",
    "patch_filename",
    "strip_tracking_lines",
]
