"""Read the upstream version a downstream project was last synced to."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError


class ManifestError(RuntimeError):
    """Raised when the package manifest is missing or malformed."""


class TrackingInfo(BaseModel):
    """``{"head": ..., "date": ...}`` block recorded after each update."""

    model_config = ConfigDict(extra="allow")

    head: str
    date: str


class _TrackedManifest(BaseModel):
    # ``true`` was written by older templates before heads were tracked.
    tracking: Union[TrackingInfo, Literal[True]]


def read_tracking_head(working_dir: Path, *, manifest_path: str = "package.json", tracking_key: str = "epic-stack") -> str | None:
    """Return the recorded upstream head, or ``None`` for the legacy ``true`` marker."""

    path = working_dir / manifest_path
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise ManifestError(f"No {manifest_path} found in {working_dir}") from error
    except (OSError, ValueError) as error:
        raise ManifestError(f"Unable to read {path}: {error}") from error

    if not isinstance(payload, dict) or tracking_key not in payload:
        raise ManifestError(f'{path} has no "{tracking_key}" property')

    try:
        manifest = _TrackedManifest.model_validate({"tracking": payload[tracking_key]})
    except ValidationError as error:
        raise ManifestError(f'Invalid "{tracking_key}" property in {path}: {error}') from error

    if manifest.tracking is True:
        return None
    return manifest.tracking.head


__all__ = ["ManifestError", "TrackingInfo", "read_tracking_head"]
