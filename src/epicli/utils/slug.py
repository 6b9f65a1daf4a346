"""Turn repository references into length-limited directory names."""

from __future__ import annotations

import hashlib
import re
from typing import Pattern

_UNSAFE_PATTERN: Pattern[str] = re.compile(r"[^A-Za-z0-9_.-]+")
_UNDERSCORE_COLLAPSE = re.compile(r"_{2,}")


def safe_dirname(value: str | None, *, fallback: str = "repo", max_length: int = 80) -> str:
    """Replace characters that are unsafe in file names with ``_``.

    ``https://github.com/org/app.git`` becomes ``https_github.com_org_app.git``.
    Names longer than ``max_length`` keep a prefix plus a short hash so
    distinct references never collide.
    """
    source = (value or "").strip()
    name = _UNDERSCORE_COLLAPSE.sub("_", _UNSAFE_PATTERN.sub("_", source)).strip("_.")
    if not name:
        name = fallback
    if len(name) <= max_length:
        return name

    digest = hashlib.sha256(source.encode("utf-8")).hexdigest()[:8]
    prefix = name[: max(max_length - len(digest) - 1, 1)].rstrip("_")
    return f"{prefix}-{digest}"


__all__ = ["safe_dirname"]
