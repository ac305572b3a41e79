"""Core module exports."""

from diffcov.core.errors import (
    ConfigError,
    DiffCovError,
    ErrorCode,
    InternalError,
    ReconciliationConflictError,
)
from diffcov.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)

__all__ = [
    # Errors
    "ConfigError",
    "DiffCovError",
    "ErrorCode",
    "InternalError",
    "ReconciliationConflictError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
]
