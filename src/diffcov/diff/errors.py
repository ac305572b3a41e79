"""Diff error types."""

from diffcov.core.errors import DiffCovError, ErrorCode


class DiffError(DiffCovError):
    """Errors raised while computing a revision diff."""


class DuplicateClassError(DiffError):
    """Two changed files claim one qualified class name with different content."""

    @classmethod
    def for_paths(cls, qualified_name: str, paths: list[str]) -> "DuplicateClassError":
        return cls(
            code=ErrorCode.DIFF_DUPLICATE_CLASS,
            message=f"Class {qualified_name} is declared by more than one file: "
            f"{', '.join(paths)}",
            details={"qualified_name": qualified_name, "paths": paths},
        )


class DiffCancelledError(DiffError):
    """The per-file phase was cancelled or ran past its deadline."""

    @classmethod
    def cancelled(cls, pending: int) -> "DiffCancelledError":
        return cls(
            code=ErrorCode.DIFF_CANCELLED,
            message="Diff cancelled",
            retryable=True,
            details={"pending_files": pending},
        )

    @classmethod
    def timed_out(cls, timeout_sec: float, pending: int) -> "DiffCancelledError":
        return cls(
            code=ErrorCode.INTERNAL_TIMEOUT,
            message=f"Diff did not finish within {timeout_sec}s",
            retryable=True,
            details={"timeout_sec": timeout_sec, "pending_files": pending},
        )
