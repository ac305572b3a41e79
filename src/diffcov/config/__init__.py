"""Config module exports."""

from diffcov.config.loader import load_config
from diffcov.config.models import (
    DiffConfig,
    DiffCovConfig,
    LoggingConfig,
    LogOutputConfig,
    ReportConfig,
    SignatureConfig,
)

__all__ = [
    "load_config",
    "DiffConfig",
    "DiffCovConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "ReportConfig",
    "SignatureConfig",
]
