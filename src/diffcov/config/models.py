"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (DIFFCOV__SECTION__KEY)
3. Repo YAML (.diffcov/config.yaml)
4. Global YAML (~/.config/diffcov/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    DIFFCOV__<SECTION>__<KEY>=<VALUE>

Examples:
    DIFFCOV__LOGGING__LEVEL=DEBUG
    DIFFCOV__DIFF__MAX_WORKERS=4
    DIFFCOV__REPORT__MODE=full
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
ReportMode = Literal["incremental", "full"]
DeletedClassPolicy = Literal["omit", "no_match"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        DIFFCOV__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every parsed file.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DiffConfig(BaseModel):
    """Revision diff configuration.

    Env vars:
        DIFFCOV__DIFF__MAX_WORKERS: Parallel fetch/parse workers
        DIFFCOV__DIFF__DIFF_TIMEOUT_SEC: Deadline for the per-file phase
        DIFFCOV__DIFF__BASE_BRANCH: Branch compared against when none is given
    """

    max_workers: int | None = Field(
        default=None,
        description="Parallel fetch/parse workers. None uses the CPU count. "
        "RISK: High values may overwhelm a remote-backed revision store.",
    )
    diff_timeout_sec: float | None = Field(
        default=None,
        description="Deadline for fetching and parsing all changed files. "
        "None waits indefinitely.",
    )
    base_branch: str = Field(
        default="master",
        description="Branch used as the old revision by branch-to-branch diffs.",
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: [".java"],
        description="File extensions treated as parseable sources.",
    )
    source_roots: list[str] = Field(
        default_factory=lambda: ["src/main/java/", "src/test/java/", "src/"],
        description="Path prefixes stripped to derive a package when a file has no "
        "package declaration. Matched anywhere in the path, first match wins.",
    )
    include_test_sources: bool = Field(
        default=False,
        description="Diff files under test source roots (src/test/).",
    )
    fail_on_duplicate_class: bool = Field(
        default=False,
        description="Raise DuplicateClassError instead of recording a conflict.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v

    @field_validator("diff_timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"diff_timeout_sec must be positive, got {v}")
        return v


class SignatureConfig(BaseModel):
    """Method signature identity policy.

    Env vars:
        DIFFCOV__SIGNATURE__ERASE_GENERICS: Drop generic arguments from parameter types
        DIFFCOV__SIGNATURE__INCLUDE_RETURN_TYPE: Make return type part of identity
    """

    erase_generics: bool = Field(
        default=True,
        description="Drop generic type arguments from parameter types. "
        "TRADEOFF: False separates overloads that differ only in type arguments.",
    )
    include_return_type: bool = Field(
        default=False,
        description="Append the return type to the signature. A changed return type "
        "then reads as delete + add instead of a modification.",
    )


class ReportConfig(BaseModel):
    """Coverage reconciliation configuration.

    Env vars:
        DIFFCOV__REPORT__MODE: incremental (changed classes only) or full
        DIFFCOV__REPORT__DELETED_CLASSES: omit or no_match
        DIFFCOV__REPORT__STRICT_CONFLICTS: Raise on conflicting class identities
    """

    mode: ReportMode = Field(
        default="incremental",
        description="incremental reports only classes touched by the diff; "
        "full also reports untouched classes unfiltered.",
    )
    deleted_classes: DeletedClassPolicy = Field(
        default="omit",
        description="What to do with coverage for classes whose source was deleted.",
    )
    strict_conflicts: bool = Field(
        default=False,
        description="Raise ReconciliationConflictError when two records share a name "
        "but not an identity, instead of marking both no-match.",
    )


class DiffCovConfig(BaseModel):
    """Root configuration for diffcov.

    All settings can be configured via:
    1. Environment variables: DIFFCOV__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    diff: DiffConfig = Field(default_factory=DiffConfig)
    signature: SignatureConfig = Field(default_factory=SignatureConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
