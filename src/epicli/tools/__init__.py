"""Tool integrations used by the epicli commands."""

from .commits import CommitRangeError, format_commit, plan_updates, print_commits, select_commit_range
from .diff_parser import DiffSection, extract_change, parse_diff, tokenize_sections
from .filters import filter_changes, normalize_path, pattern_matches
from .manifest import ManifestError, read_tracking_head
from .materialize import ManifestRule, MaterializeReport, materialize, patch_filename
from .repo import RepoResolutionError, checkout_upstream, resolve_repo_source
from .vcs import GitError, GitRepository, working_tree_is_clean

__all__ = [
    "CommitRangeError",
    "DiffSection",
    "GitError",
    "GitRepository",
    "ManifestError",
    "ManifestRule",
    "MaterializeReport",
    "RepoResolutionError",
    "checkout_upstream",
    "extract_change",
    "filter_changes",
    "format_commit",
    "materialize",
    "normalize_path",
    "parse_diff",
    "patch_filename",
    "pattern_matches",
    "plan_updates",
    "print_commits",
    "read_tracking_head",
    "resolve_repo_source",
    "select_commit_range",
    "tokenize_sections",
    "working_tree_is_clean",
]
