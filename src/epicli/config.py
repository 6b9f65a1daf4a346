"""Configuration loading for epicli.

Settings live in an optional ``.epicli.yaml`` at the root of the working
project.  Every key has a default, so the file only needs the values a
project wants to override, e.g.::

    upstream:
      repo: org/template
    patches:
      directory: _upstream-patches
    diff:
      ignored: ["node_modules/**", "dist/**"]
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_CONFIG_NAME = ".epicli.yaml"
EPIC_STACK_REPO = "https://github.com/epicweb-dev/epic-stack.git"

# Lockfiles, build output and VCS metadata never take part in a diff.
DEFAULT_IGNORED_PATHS: tuple[str, ...] = (
    "node_modules/**",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "dist/**",
    ".git/**",
    "coverage/**",
)


class ConfigError(ValueError):
    """Raised when the configuration file is unreadable or invalid."""


class ConfigModel(BaseModel):
    """Base model that rejects unknown keys."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class Bookmark(ConfigModel):
    """Upstream commit that closes a named batch of updates."""

    commit: str
    description: str
    instructions: str = ""


DEFAULT_BOOKMARKS: List[Bookmark] = [
    Bookmark(commit="62e65077269d803627418677f180a77aab2bff53", description="Use native ESM"),
    Bookmark(commit="bc93804353cf89c8c901e1a8b629ad25ac0a4e3c", description="Add shadcn/ui"),
    Bookmark(commit="5cb51100ddc97cd31ec53036c42f7fae7ff15572", description="Bring improvements from workshops"),
    Bookmark(
        commit="49897824f942576c32aba6876ff52e323eec5144",
        description="Change relative imports to node resolution",
    ),
    Bookmark(commit="90ef60d4b2e762a1888fc72abd71f40a5142f978", description="Update @epic-web/config"),
    Bookmark(
        commit="158ed99889e628410cf760e78bb07e09622a87e4",
        description="React Router v7",
        instructions=(
            "This update migrates @remix-run/* to react-router and @react-router/node. "
            "Pay special attention to the imports."
        ),
    ),
    Bookmark(
        commit="c33b520795f7cb713894f535e23d7c7400932853",
        description="v7 typegen",
        instructions=(
            "Route types are now imported from a typegen +types/ directory which is created by running "
            "`npx react-router typegen`. It is ok to leave module resolution errors here while you are "
            "patching, we can run the typegen once at the very end."
        ),
    ),
    Bookmark(commit="0345ff7d775569352a18f13908c817623e2981d5", description="Move images from SQLite to Tigris"),
]


class UpstreamConfig(ConfigModel):
    repo: Optional[str] = None
    template_repo: str = EPIC_STACK_REPO


class PatchesConfig(ConfigModel):
    directory: str = "_epicli-patches"


class DiffConfig(ConfigModel):
    ignored: List[str] = Field(default_factory=lambda: list(DEFAULT_IGNORED_PATHS))


class ManifestConfig(ConfigModel):
    path: str = "package.json"
    tracking_key: str = "epic-stack"
    tracking_fields: List[str] = Field(default_factory=lambda: ["head", "date"])

    @property
    def tokens(self) -> tuple[str, ...]:
        return tuple(f'"{name}"' for name in [self.tracking_key, *self.tracking_fields])


class EpicliConfig(ConfigModel):
    """Validated configuration for one working project."""

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    patches: PatchesConfig = Field(default_factory=PatchesConfig)
    diff: DiffConfig = Field(default_factory=DiffConfig)
    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    bookmarks: List[Bookmark] = Field(default_factory=lambda: [item.model_copy() for item in DEFAULT_BOOKMARKS])

    def patches_dir(self, working_dir: Path) -> Path:
        return working_dir / self.patches.directory


def load_config(path: Path | None = None, *, working_dir: Path | None = None) -> EpicliConfig:
    """Load configuration from ``path`` or ``<working_dir>/.epicli.yaml``.

    An explicit ``path`` must exist; the implicit per-project file is
    optional and defaults apply when it is absent.
    """

    if path is None:
        candidate = (working_dir or Path.cwd()) / DEFAULT_CONFIG_NAME
        if not candidate.exists():
            return EpicliConfig()
        path = candidate
    elif not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    try:
        return EpicliConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration in {path}: {error}") from error


__all__ = [
    "Bookmark",
    "ConfigError",
    "DEFAULT_BOOKMARKS",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_IGNORED_PATHS",
    "EPIC_STACK_REPO",
    "EpicliConfig",
    "ManifestConfig",
    "load_config",
]
