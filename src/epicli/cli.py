"""CLI commands for propagating template updates into downstream projects."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from .apply import apply_changes
from .config import ConfigError, EpicliConfig, load_config
from .models import ApplyRequest, CommitRef
from .prompts import render_example_prompt
from .tools.commits import CommitRangeError, print_commits, select_commit_range
from .tools.manifest import ManifestError, read_tracking_head
from .tools.repo import RepoResolutionError, checkout_upstream
from .tools.vcs import GitError
from .update import close_out_writer, find_updates

APP_HELP = "Bring upstream template changes into a project as files and reviewable patches."

app = typer.Typer(help=APP_HELP, no_args_is_help=True)


def _fail(message: str) -> NoReturn:
    typer.secho(f"\nError: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _resolve_working_dir(directory: str) -> Path:
    working_dir = Path(directory).expanduser().resolve()
    if not working_dir.is_dir():
        _fail(f"Working directory not found: {working_dir}")
    return working_dir


def _load_settings(config: Optional[str], working_dir: Path) -> EpicliConfig:
    try:
        return load_config(Path(config) if config else None, working_dir=working_dir)
    except ConfigError as error:
        _fail(str(error))


def _announce_range(label: str, commits: List[CommitRef]) -> None:
    typer.echo(f"{typer.style(label, bold=True)} ({len(commits)} commits)")
    print_commits(commits)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug details to stderr.",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def apply(
    upstream: Optional[str] = typer.Argument(
        None,
        help="Upstream repository: a local path, a git URL, or org/repo on GitHub.",
    ),
    directory: str = typer.Option(
        ".",
        "--directory",
        "-d",
        help="Project to update.",
    ),
    base: Optional[str] = typer.Option(
        None,
        "--base",
        help="Upstream commit the project already contains; only later commits are applied.",
    ),
    head: Optional[str] = typer.Option(
        None,
        "--head",
        help="Last upstream commit to apply (defaults to HEAD).",
    ),
    file: List[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Always include this file (repeatable).",
    ),
    filter_pattern: List[str] = typer.Option(
        None,
        "--filter",
        help="Only include paths matching this glob or substring (repeatable).",
    ),
    ignore_pattern: List[str] = typer.Option(
        None,
        "--ignore",
        help="Exclude paths matching this glob or substring (repeatable).",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Answer yes to every confirmation prompt.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to an epicli configuration file.",
    ),
) -> None:
    """Apply the changes from a range of upstream commits."""
    working_dir = _resolve_working_dir(directory)
    settings = _load_settings(config, working_dir)
    reference = upstream or settings.upstream.repo
    if not reference:
        _fail("No upstream repository given. Pass UPSTREAM or set upstream.repo in .epicli.yaml.")

    try:
        with checkout_upstream(reference) as repo:
            commits = select_commit_range(repo, base=base, head=head)
            first, last = commits[0], commits[-1]
            typer.secho(
                f"\nGetting changes from {reference} from {first.short_hash} to {last.short_hash}",
                fg=typer.colors.YELLOW,
            )
            _announce_range("Changes", commits)
            request = ApplyRequest(
                working_dir=working_dir,
                upstream=reference,
                commits=commits,
                files=list(file or []),
                include=list(filter_pattern or []),
                exclude=list(ignore_pattern or []),
                assume_yes=yes,
            )
            apply_changes(request, repo, config=settings)
    except (GitError, RepoResolutionError, CommitRangeError) as error:
        _fail(str(error))


@app.command()
def update(
    directory: str = typer.Option(
        ".",
        "--directory",
        "-d",
        help="Project to update.",
    ),
    base: Optional[str] = typer.Option(
        None,
        "--base",
        help="Template commit to update from (defaults to the head recorded in package.json).",
    ),
    file: List[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Always include this file (repeatable).",
    ),
    filter_pattern: List[str] = typer.Option(
        None,
        "--filter",
        help="Only include paths matching this glob or substring (repeatable).",
    ),
    ignore_pattern: List[str] = typer.Option(
        None,
        "--ignore",
        help="Exclude paths matching this glob or substring (repeatable).",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Answer yes to every confirmation prompt.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to an epicli configuration file.",
    ),
) -> None:
    """Apply the next batch of template updates since the last recorded sync."""
    working_dir = _resolve_working_dir(directory)
    settings = _load_settings(config, working_dir)
    manifest = settings.manifest

    if base is None:
        try:
            base = read_tracking_head(working_dir, manifest_path=manifest.path, tracking_key=manifest.tracking_key)
        except ManifestError as error:
            _fail(str(error))
    if not base:
        _fail(f'No base SHA found. Pass --base or record "{manifest.tracking_key}.head" in {manifest.path}.')

    template = settings.upstream.template_repo
    try:
        with checkout_upstream(template, key="template") as repo:
            updates = find_updates(repo, base, settings.bookmarks)
            if not updates:
                typer.secho("\nNo updates found", fg=typer.colors.GREEN)
                return

            batch = updates[0]
            typer.secho(f"\nUpdating {working_dir} from {base[:7]}", fg=typer.colors.YELLOW)
            _announce_range(batch.label, batch.commits)
            for upcoming in updates[1:]:
                typer.secho(f"Future: {upcoming.label} ({len(upcoming.commits)} commits)", dim=True)

            request = ApplyRequest(
                working_dir=working_dir,
                upstream=template,
                commits=batch.commits,
                files=list(file or []),
                include=list(filter_pattern or []),
                exclude=list(ignore_pattern or []),
                instructions=batch.instructions,
                on_complete=close_out_writer(settings.patches_dir(working_dir), batch.commits[-1], manifest),
                assume_yes=yes,
            )
            apply_changes(request, repo, config=settings)
    except (GitError, RepoResolutionError, CommitRangeError) as error:
        _fail(str(error))


@app.command()
def prompt(
    upstream: str = typer.Argument(..., help="Example repository whose full history should be reproduced."),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the prompt to this file instead of printing it.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to an epicli configuration file.",
    ),
) -> None:
    """Generate an AI prompt from the full diff of an example repository."""
    settings = _load_settings(config, Path.cwd())
    try:
        with checkout_upstream(upstream) as repo:
            commits = select_commit_range(repo)
            diff_text = repo.diff_range(commits[0].hash, commits[-1].hash, ignored=settings.diff.ignored)
    except (GitError, RepoResolutionError, CommitRangeError) as error:
        _fail(str(error))

    text = render_example_prompt(diff_text)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8", errors="surrogateescape")
        typer.secho(f"Prompt written to {output}.", fg=typer.colors.GREEN)
        return
    typer.secho("\nPaste this prompt into your AI-powered editor:\n", fg=typer.colors.BLUE)
    typer.echo(text)


if __name__ == "__main__":
    app()
