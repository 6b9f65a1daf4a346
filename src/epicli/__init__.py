"""epicli: propagate upstream template changes into downstream projects."""

from .apply import ApplyOutcome, ApplyResult, apply_changes
from .models import ApplyRequest, ChangeKind, CommitRef, FileChange, UpdateBatch

__all__ = [
    "ApplyOutcome",
    "ApplyRequest",
    "ApplyResult",
    "ChangeKind",
    "CommitRef",
    "FileChange",
    "UpdateBatch",
    "apply_changes",
]
