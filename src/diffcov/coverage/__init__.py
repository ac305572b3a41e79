"""Coverage records, reconciliation against a diff, and aggregated views."""

from diffcov.coverage.builder import CoverageBuilder
from diffcov.coverage.jacoco import load_jacoco_xml
from diffcov.coverage.merge import merge_line_coverage, merge_records
from diffcov.coverage.models import (
    BundleCoverage,
    CoverageCounter,
    CoverageParseError,
    CoverageRecord,
    CoverageSummary,
    LineCoverage,
    MethodCoverage,
    PackageCoverage,
    ReconciledClass,
    ReconcileStatus,
    SourceFileCoverage,
)
from diffcov.coverage.reconcile import decode_parameter_types, reconcile

__all__ = [
    # Builder
    "CoverageBuilder",
    "reconcile",
    "decode_parameter_types",
    # Loading and merging
    "load_jacoco_xml",
    "merge_line_coverage",
    "merge_records",
    # Models
    "BundleCoverage",
    "CoverageCounter",
    "CoverageParseError",
    "CoverageRecord",
    "CoverageSummary",
    "LineCoverage",
    "MethodCoverage",
    "PackageCoverage",
    "ReconciledClass",
    "ReconcileStatus",
    "SourceFileCoverage",
]
