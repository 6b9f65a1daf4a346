"""Drive one upstream-to-downstream apply run.

The run moves through ``parse -> filter -> preview -> gates -> materialize``.
The preview is a dry-run pass with no filesystem side effects; the real pass
only starts after the working-tree and patches-directory gates have been
passed, either interactively or through ``ApplyRequest.assume_yes``.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import typer

from .config import EpicliConfig
from .models import ApplyRequest, FileChange
from .tools.commits import CommitRangeError
from .tools.diff_parser import parse_diff
from .tools.filters import filter_changes
from .tools.materialize import ManifestRule, MaterializeReport, materialize
from .tools.vcs import GitRepository, working_tree_is_clean

LOGGER = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]
CleanProbe = Callable[[Path], bool]


class ApplyOutcome(str, Enum):
    """How an apply run ended."""

    APPLIED = "applied"
    CANCELLED = "cancelled"
    NOTHING_TO_DO = "nothing-to-do"


@dataclass(slots=True)
class ApplyResult:
    """Changes considered by a run and the reports of both passes."""

    outcome: ApplyOutcome
    changes: List[FileChange] = field(default_factory=list)
    preview: Optional[MaterializeReport] = None
    report: Optional[MaterializeReport] = None


def confirm_prompt(message: str) -> bool:
    """Ask a yes/no question on the terminal, defaulting to no."""
    return typer.confirm(message, default=False)


def collect_changes(repo: GitRepository, request: ApplyRequest, config: EpicliConfig) -> List[FileChange]:
    """Diff the requested commit range in ``repo`` and parse the result."""

    if not request.commits:
        raise CommitRangeError("No commits found in repository")
    first, last = request.commits[0], request.commits[-1]
    diff_text = repo.diff_range(first.hash, last.hash, ignored=config.diff.ignored)
    changes = parse_diff(diff_text)
    LOGGER.debug("Parsed %d file change(s) between %s and %s", len(changes), first.short_hash, last.short_hash)
    return changes


def _print_filter_summary(request: ApplyRequest) -> None:
    if not request.has_filters:
        typer.secho("\nFiles", fg=typer.colors.BLUE)
        return
    matching = ", ".join([*request.include, *request.files])
    typer.echo(f"\n{typer.style('Files matching', bold=True)} {matching}")
    if request.exclude:
        typer.secho(f"  Excluding: {', '.join(request.exclude)}", fg=typer.colors.RED)


def _cancel(message: str) -> bool:
    typer.secho(message, fg=typer.colors.BLUE)
    return False


def _pass_gates(request: ApplyRequest, patches_dir: Path, confirm: ConfirmFn, is_clean: CleanProbe) -> bool:
    def ask(message: str) -> bool:
        if request.assume_yes:
            return True
        typer.echo("")
        return confirm(message)

    if not is_clean(request.working_dir):
        if not ask("Git working tree is not clean. Proceed anyway?"):
            return _cancel("Update canceled. Please commit or stash your changes first.")

    if patches_dir.exists():
        if not ask(f"Patches directory found at {patches_dir}.\nDo you want to replace the existing patches?"):
            return _cancel("Update canceled. Please handle the existing patches first.")
        shutil.rmtree(patches_dir)
    elif not ask("Are you sure you want to apply these changes?"):
        return _cancel("Update canceled.")
    return True


def apply_changes(
    request: ApplyRequest,
    repo: GitRepository,
    *,
    config: EpicliConfig | None = None,
    confirm: ConfirmFn = confirm_prompt,
    is_clean: CleanProbe = working_tree_is_clean,
) -> ApplyResult:
    """Propagate the commits in ``request`` from ``repo`` into the working directory."""

    config = config or EpicliConfig()
    changes = filter_changes(
        collect_changes(repo, request, config),
        files=request.files,
        include=request.include,
        exclude=request.exclude,
    )

    _print_filter_summary(request)
    if not changes:
        typer.secho("  No files to update", dim=True)
        return ApplyResult(outcome=ApplyOutcome.NOTHING_TO_DO)

    working_dir = request.working_dir
    patches_dir = config.patches_dir(working_dir)
    manifest = ManifestRule(path=config.manifest.path, tokens=config.manifest.tokens)

    preview = materialize(changes, working_dir, patches_dir, dry_run=True, manifest=manifest)

    if not _pass_gates(request, patches_dir, confirm, is_clean):
        return ApplyResult(outcome=ApplyOutcome.CANCELLED, changes=changes, preview=preview)

    # TODO: write the preview pass into a temp dir and copy it here so each file is only reported once.
    report = materialize(
        changes,
        working_dir,
        patches_dir,
        dry_run=False,
        instructions=request.instructions,
        on_complete=request.on_complete,
        manifest=manifest,
    )
    if report.errors:
        LOGGER.warning("%d file operation(s) failed during apply", len(report.errors))
    return ApplyResult(outcome=ApplyOutcome.APPLIED, changes=changes, preview=preview, report=report)


__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "apply_changes",
    "collect_changes",
    "confirm_prompt",
]
