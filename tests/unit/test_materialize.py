from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from epicli.models import ChangeKind, FileChange
from epicli.tools.diff_parser import parse_diff
from epicli.tools.materialize import (
    ManifestRule,
    extract_added_content,
    materialize,
    patch_filename,
    strip_tracking_lines,
)

UPSTREAM_DIFF = textwrap.dedent(
    """\
    diff --git a/src/a.ts b/src/a.ts
    new file mode 100644
    index 0000000..e69de29
    --- /dev/null
    +++ b/src/a.ts
    @@ -0,0 +1,2 @@
    +export const a = 1
    +export const b = 2
    diff --git a/old.ts b/old.ts
    deleted file mode 100644
    index 1111111..0000000
    --- a/old.ts
    +++ /dev/null
    @@ -1 +0,0 @@
    -gone
    diff --git a/package.json b/package.json
    index 2222222..3333333 100644
    --- a/package.json
    +++ b/package.json
    @@ -2,8 +2,8 @@
       "name": "app",
       "epic-stack": {
    -    "head": "aaaaaaa",
    -    "date": "2024-01-01"
    +    "head": "bbbbbbb",
    +    "date": "2024-02-01"
       },
    """
)

MANIFEST_WITH_DEPENDENCY = textwrap.dedent(
    """\
    diff --git a/package.json b/package.json
    index 2222222..3333333 100644
    --- a/package.json
    +++ b/package.json
    @@ -2,9 +2,10 @@
       "epic-stack": {
    -    "head": "aaaaaaa",
    +    "head": "bbbbbbb",
       },
       "dependencies": {
    +    "zod": "^3.0.0",
         "react": "^18.0.0"
    """
)


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "old.ts").write_text("gone\n", encoding="utf-8")
    (root / "package.json").write_text("{}\n", encoding="utf-8")
    return root


def test_real_run_writes_deletes_and_skips_tracking_only_manifest(workspace: Path) -> None:
    patches = workspace / "_patches"

    report = materialize(parse_diff(UPSTREAM_DIFF), workspace, patches, dry_run=False)

    assert (workspace / "src" / "a.ts").read_text(encoding="utf-8") == "export const a = 1\nexport const b = 2\n"
    assert not (workspace / "old.ts").exists()
    assert not (patches / "package.json.patch").exists()
    assert report.ok
    assert report.added == ["src/a.ts"]
    assert report.deleted == ["old.ts"]
    assert report.skipped == ["package.json"]


def test_existing_added_file_is_redirected_to_patch(workspace: Path) -> None:
    target = workspace / "src" / "a.ts"
    target.parent.mkdir()
    target.write_text("local work\n", encoding="utf-8")
    patches = workspace / "_patches"
    changes = parse_diff(UPSTREAM_DIFF)

    report = materialize(changes, workspace, patches, dry_run=False)

    assert target.read_text(encoding="utf-8") == "local work\n"
    assert (patches / "_src_a.ts.patch").read_text(encoding="utf-8") == changes[0].raw_content
    assert report.redirected == ["src/a.ts"]
    assert report.added == []
    assert "Adding 0" in report.log
    assert "Modifying 2" in report.log


def test_console_log_lists_categories_in_order(workspace: Path) -> None:
    report = materialize(parse_diff(UPSTREAM_DIFF), workspace, workspace / "_patches", dry_run=True)

    assert report.log == [
        "Adding 1",
        "A src/a.ts",
        "Deleting 1",
        "D old.ts",
        "Modifying 1",
        "M package.json",
    ]


def test_dry_run_has_no_side_effects(workspace: Path) -> None:
    before = _snapshot(workspace)
    patches = workspace / "_patches"
    called: list[str] = []

    report = materialize(
        parse_diff(UPSTREAM_DIFF),
        workspace,
        patches,
        dry_run=True,
        on_complete=lambda: called.append("done"),
    )

    assert _snapshot(workspace) == before
    assert not patches.exists()
    assert called == []
    assert report.dry_run
    assert report.patches == []


def test_dry_run_output_is_stable(workspace: Path) -> None:
    changes = parse_diff(UPSTREAM_DIFF)

    first = materialize(changes, workspace, workspace / "_patches", dry_run=True)
    second = materialize(changes, workspace, workspace / "_patches", dry_run=True)

    assert first.log == second.log
    assert first.counts == second.counts


def test_dry_run_reports_redirects(workspace: Path) -> None:
    (workspace / "src").mkdir()
    (workspace / "src" / "a.ts").write_text("local\n", encoding="utf-8")

    report = materialize(parse_diff(UPSTREAM_DIFF), workspace, workspace / "_patches", dry_run=True)

    assert report.redirected == ["src/a.ts"]
    assert report.log[0] == "Adding 0"
    assert report.log[-1] == "M src/a.ts"


def test_manifest_patch_keeps_real_changes(workspace: Path) -> None:
    patches = workspace / "_patches"

    report = materialize(parse_diff(MANIFEST_WITH_DEPENDENCY), workspace, patches, dry_run=False)

    content = (patches / "package.json.patch").read_text(encoding="utf-8")
    assert '+    "zod": "^3.0.0",' in content
    assert '"head"' not in content
    assert '"epic-stack"' not in content
    assert report.patches == ["package.json.patch"]


def test_custom_manifest_rule(workspace: Path) -> None:
    patches = workspace / "_patches"
    rule = ManifestRule(path="composer.json", tokens=('"epic-stack"',))

    materialize(parse_diff(UPSTREAM_DIFF), workspace, patches, dry_run=False, manifest=rule)

    assert (patches / "package.json.patch").exists()


def test_modified_images_never_produce_patches(tmp_path: Path) -> None:
    patches = tmp_path / "_patches"
    change = FileChange(
        path="public/favicon.ICO",
        kind=ChangeKind.MODIFIED,
        raw_content="diff --git a/public/favicon.ICO b/public/favicon.ICO\n+x\n",
    )

    report = materialize([change], tmp_path, patches, dry_run=False)

    assert list(patches.iterdir()) == []
    assert report.skipped == ["public/favicon.ICO"]


def test_rename_is_logged_with_both_paths(tmp_path: Path) -> None:
    change = FileChange(
        path="docs/new.md",
        old_path="docs/old.md",
        kind=ChangeKind.RENAMED,
        raw_content="diff --git a/docs/old.md b/docs/new.md\nrename from docs/old.md\nrename to docs/new.md\n",
    )

    report = materialize([change], tmp_path, tmp_path / "_patches", dry_run=False)

    assert "R docs/old.md → docs/new.md" in report.log
    assert (tmp_path / "_patches" / "docs_new.md.patch").exists()


def test_failures_are_isolated_per_file(tmp_path: Path) -> None:
    (tmp_path / "blocker").write_text("not a directory\n", encoding="utf-8")
    changes = [
        FileChange(path="blocker/inner.ts", kind=ChangeKind.ADDED, raw_content="+++ b/blocker/inner.ts\n+x\n"),
        FileChange(path="ok.ts", kind=ChangeKind.ADDED, raw_content="+++ b/ok.ts\n+y\n"),
    ]

    report = materialize(changes, tmp_path, tmp_path / "_patches", dry_run=False)

    assert not report.ok
    assert [path for path, _ in report.errors] == ["blocker/inner.ts"]
    assert (tmp_path / "ok.ts").read_text(encoding="utf-8") == "y\n"
    assert report.added == ["ok.ts"]


def test_deleting_absent_file_is_not_an_error(tmp_path: Path) -> None:
    report = materialize(
        [FileChange(path="missing.ts", kind=ChangeKind.DELETED)],
        tmp_path,
        tmp_path / "_patches",
        dry_run=False,
    )

    assert report.ok
    assert "    (Already absent)" in report.log


def test_binary_additions_are_skipped(tmp_path: Path) -> None:
    change = FileChange(path="public/logo.png", kind=ChangeKind.ADDED, raw_content="", binary=True)

    report = materialize([change], tmp_path, tmp_path / "_patches", dry_run=False)

    assert not (tmp_path / "public" / "logo.png").exists()
    assert report.skipped == ["public/logo.png"]


def test_on_complete_runs_after_real_pass(tmp_path: Path) -> None:
    called: list[str] = []

    materialize([], tmp_path, tmp_path / "_patches", dry_run=False, on_complete=lambda: called.append("done"))

    assert called == ["done"]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        (".cursor/rules/x.mdc", "_.cursor_rules_x.mdc.patch"),
        ("app/root.tsx", "app_root.tsx.patch"),
        ("package.json", "package.json.patch"),
    ],
)
def test_patch_filename(path: str, expected: str) -> None:
    assert patch_filename(path) == expected


def test_extract_added_content_respects_missing_newline_marker() -> None:
    raw = "--- /dev/null\n+++ b/x.txt\n@@ -0,0 +1 @@\n+last line\n\\ No newline at end of file\n"

    assert extract_added_content(raw) == "last line"


def test_extract_added_content_of_empty_file() -> None:
    assert extract_added_content("diff --git a/e b/e\nnew file mode 100644\n--- /dev/null\n+++ b/e\n") == ""


def test_strip_tracking_lines_returns_none_without_content() -> None:
    tokens = ('"epic-stack"', '"head"', '"date"')
    changes = parse_diff(UPSTREAM_DIFF)

    assert strip_tracking_lines(changes[2].raw_content or "", tokens) is None


def test_file_appearing_after_precheck_is_redirected(tmp_path: Path) -> None:
    first = FileChange(path="x.ts", kind=ChangeKind.ADDED, raw_content="+++ b/x.ts\n+one\n")
    second = FileChange(path="x.ts", kind=ChangeKind.ADDED, raw_content="+++ b/x.ts\n+two\n")
    patches = tmp_path / "_patches"

    report = materialize([first, second], tmp_path, patches, dry_run=False)

    assert (tmp_path / "x.ts").read_text(encoding="utf-8") == "one\n"
    assert (patches / "x.ts.patch").read_text(encoding="utf-8") == "+++ b/x.ts\n+two\n"
    assert report.added == ["x.ts"]
    assert report.redirected == ["x.ts"]
    assert report.ok


def test_undecodable_bytes_survive_the_round_trip(tmp_path: Path) -> None:
    raw = b"+++ b/legacy.txt\n+caf\xe9\n".decode("utf-8", errors="surrogateescape")
    change = FileChange(path="legacy.txt", kind=ChangeKind.ADDED, raw_content=raw)

    materialize([change], tmp_path, tmp_path / "_patches", dry_run=False)

    assert (tmp_path / "legacy.txt").read_bytes() == b"caf\xe9\n"
