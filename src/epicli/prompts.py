"""Prompt templates handed to the user or their AI editor."""

from __future__ import annotations

from pathlib import Path

from .models import CommitRef

CLOSE_OUT_FILENAME = "_DO_THIS_FILE_LAST.prompt"

_NEXT_STEPS_NOTES = (
    "- Focus on the changed lines, not the surrounding code.",
    "- Ignore formatting changes.",
    "- Ignore lint/type errors.",
)


def relative_patches_dir(patches_dir: Path, working_dir: Path) -> str:
    """Return the patches directory relative to ``working_dir`` when possible."""
    try:
        return patches_dir.relative_to(working_dir).as_posix()
    except ValueError:
        return patches_dir.as_posix()


def render_next_steps(patches_dir: Path, working_dir: Path, instructions: str = "") -> str:
    """Render the copy-and-run prompt that walks an assistant through the patches."""
    relative = relative_patches_dir(patches_dir, working_dir)
    lines = [
        f"The files in {relative} are upstream patches from a similar project and we want to apply similar changes here.",
        "The project is a bit different so the patch might not match exactly, but do your best to apply it anyway.",
        "For each patch, follow these steps before working on the next patch until all patches are applied:",
        f"1. If it appears the patch has not yet been applied, apply it to the matching file in {working_dir.as_posix()}, otherwise continue to the next step.",
        "2. Delete the patch file.",
        "",
        f"Once you've finished applying all the patches, delete the {relative} directory.",
        "",
        "Here are some general notes:",
        *_NEXT_STEPS_NOTES,
    ]
    if instructions.strip():
        lines.append(instructions.strip())
    return "\n".join(lines)


def render_close_out(patches_dir: Path, commit: CommitRef, *, tracking_key: str = "epic-stack") -> str:
    """Render the final prompt that records the new upstream head once patches are done."""
    return (
        f"Check to see how many files are in {patches_dir.as_posix()}\n"
        "\n"
        "If there is more than one, stop reading this file and go back to processing the other patches.\n"
        "\n"
        "If this is the only file, complete these closing steps.\n"
        f'1. Update the "{tracking_key}" property in the package.json to the following:\n'
        "\n"
        f'"{tracking_key}": {{\n'
        f'  "head": "{commit.hash}",\n'
        f'  "date": "{commit.date}"\n'
        "}\n"
        "\n"
        f"2. Delete the {patches_dir.name} directory.\n"
        "3. Thank the user for using epicli, and tell them to run `epicli update` to check for any remaining updates.\n"
    )


def render_example_prompt(diff: str) -> str:
    """Wrap an example repository diff in a request to reproduce it locally."""
    return (
        "Hello, I need your help making a change in this project. Here's a diff from another project "
        "which made changes similar to the ones I would like you to make:\n"
        "\n"
        "```diff\n"
        f"{diff.rstrip()}\n"
        "```\n"
        "\n"
        "Please help me apply similar changes to my project. Note that some files may have moved or been "
        "renamed, so you'll need to adapt the changes accordingly."
    )


__all__ = [
    "CLOSE_OUT_FILENAME",
    "relative_patches_dir",
    "render_close_out",
    "render_example_prompt",
    "render_next_steps",
]
