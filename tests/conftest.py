from __future__ import annotations

import json
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "Template Maintainer",
    "GIT_AUTHOR_EMAIL": "maintainer@example.com",
    "GIT_COMMITTER_NAME": "Template Maintainer",
    "GIT_COMMITTER_EMAIL": "maintainer@example.com",
}


@dataclass(slots=True)
class ScratchRepo:
    """Throwaway git repository used as an upstream template in tests."""

    root: Path

    def git(self, *args: str) -> str:
        env = os.environ.copy()
        env.update(_GIT_ENV)
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            env=env,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout

    def write(self, relative: str, content: str) -> None:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def remove(self, relative: str) -> None:
        (self.root / relative).unlink()

    def commit(self, message: str) -> str:
        self.git("add", "--all")
        self.git("commit", "-m", message)
        return self.git("rev-parse", "HEAD").strip()


def _manifest_text(head: str, date: str) -> str:
    payload = {
        "name": "template-app",
        "version": "1.0.0",
        "epic-stack": {"head": head, "date": date},
        "dependencies": {"react": "^18.0.0"},
    }
    return json.dumps(payload, indent=2) + "\n"


@pytest.fixture()
def make_repo(tmp_path: Path) -> Callable[[str], ScratchRepo]:
    """Return a factory that initialises empty git repositories under ``tmp_path``."""

    def factory(name: str) -> ScratchRepo:
        root = tmp_path / name
        root.mkdir(parents=True)
        repo = ScratchRepo(root=root)
        repo.git("init")
        repo.git("config", "commit.gpgsign", "false")
        return repo

    return factory


@dataclass(slots=True)
class TemplateHistory:
    """Upstream template with a baseline commit followed by one update."""

    repo: ScratchRepo
    baseline: str
    update: str


@pytest.fixture()
def template_history(make_repo: Callable[[str], ScratchRepo]) -> TemplateHistory:
    """Template whose second commit adds, deletes, and bumps version tracking."""

    repo = make_repo("template")
    repo.write("package.json", _manifest_text("0000000", "2024-01-01"))
    repo.write("README.md", "# Template\n")
    repo.write("old.ts", "export const legacy = true\n")
    repo.write("app/root.tsx", "export default function Root() {\n  return null\n}\n")
    baseline = repo.commit("Initial template")

    repo.write("package.json", _manifest_text("1111111", "2024-02-01"))
    repo.write("src/a.ts", "export const a = 1\nexport const b = 2\n")
    repo.remove("old.ts")
    repo.write("app/root.tsx", "export default function Root() {\n  return <main />\n}\n")
    update = repo.commit("Add a.ts and update root")

    return TemplateHistory(repo=repo, baseline=baseline, update=update)


@pytest.fixture()
def manifest_text() -> Callable[..., str]:
    """Render a ``package.json`` carrying the given version-tracking block."""
    return _manifest_text
