"""Method-level diff between two revisions."""

from diffcov.diff.aggregator import CodeDiff, diff_branch_to_branch, diff_tag_to_tag
from diffcov.diff.errors import DiffCancelledError, DiffError, DuplicateClassError
from diffcov.diff.methods import diff_methods
from diffcov.diff.models import (
    ChangeKind,
    ClassConflict,
    ClassInfo,
    DeletedClass,
    Diagnostic,
    DiagnosticKind,
    DiffResult,
    MethodInfo,
    SkippedFile,
)

__all__ = [
    # Orchestration
    "CodeDiff",
    "diff_branch_to_branch",
    "diff_tag_to_tag",
    "diff_methods",
    # Models
    "ChangeKind",
    "ClassConflict",
    "ClassInfo",
    "DeletedClass",
    "Diagnostic",
    "DiagnosticKind",
    "DiffResult",
    "MethodInfo",
    "SkippedFile",
    # Errors
    "DiffCancelledError",
    "DiffError",
    "DuplicateClassError",
]
