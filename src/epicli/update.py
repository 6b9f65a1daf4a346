"""Batch template history since the last sync into ordered updates."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from .config import Bookmark, ManifestConfig
from .models import CommitRef, CompletionCallback, UpdateBatch
from .prompts import CLOSE_OUT_FILENAME, render_close_out
from .tools.commits import plan_updates, select_commit_range
from .tools.vcs import GitRepository


def find_updates(repo: GitRepository, base: str, bookmarks: Sequence[Bookmark]) -> List[UpdateBatch]:
    """Return the pending update batches in ``repo`` after commit ``base``.

    An up-to-date project yields an empty list rather than an error.
    """

    base_hash = repo.resolve(base)
    if base_hash is not None and not repo.log(base=base_hash):
        return []
    return plan_updates(select_commit_range(repo, base=base), bookmarks)


def close_out_writer(patches_dir: Path, commit: CommitRef, manifest: ManifestConfig) -> CompletionCallback:
    """Build the callback that leaves the final instructions in ``patches_dir``."""

    def write_close_out() -> None:
        patches_dir.mkdir(parents=True, exist_ok=True)
        content = render_close_out(patches_dir, commit, tracking_key=manifest.tracking_key)
        (patches_dir / CLOSE_OUT_FILENAME).write_text(content, encoding="utf-8")

    return write_close_out


__all__ = ["close_out_writer", "find_updates"]
