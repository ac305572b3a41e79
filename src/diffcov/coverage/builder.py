"""Coverage builder: collects class coverage and exposes reconciled views.

Usage::

    diff = CodeDiff(store).diff_branch_to_branch("feature/x")
    builder = CoverageBuilder(diff=diff)
    for record in load_jacoco_xml("target/site/jacoco/jacoco.xml"):
        builder.visit_coverage(record)

    bundle = builder.get_bundle("my-service")
    flagged = builder.get_no_match_classes()

Without a diff every class is reported unfiltered.
"""

from __future__ import annotations

from pathlib import Path

import pygit2
import structlog

from diffcov.config.models import DiffCovConfig
from diffcov.core.errors import ReconciliationConflictError
from diffcov.coverage.models import (
    BundleCoverage,
    CoverageRecord,
    PackageCoverage,
    ReconciledClass,
    SourceFileCoverage,
)
from diffcov.coverage.reconcile import reconcile
from diffcov.diff.aggregator import diff_branch_to_branch, diff_tag_to_tag
from diffcov.diff.models import DiffResult

log = structlog.get_logger(__name__)


class CoverageBuilder:
    """Collects coverage records and reconciles them against one diff."""

    def __init__(
        self,
        diff: DiffResult | None = None,
        config: DiffCovConfig | None = None,
    ) -> None:
        self._diff = diff
        self._config = config or DiffCovConfig()
        self._records: list[CoverageRecord] = []
        self._class_ids: dict[str, str] = {}
        self._reconciled: list[ReconciledClass] | None = None

    @classmethod
    def for_branches(
        cls,
        repo_location: Path | str,
        new_branch: str,
        old_branch: str | None = None,
        *,
        config: DiffCovConfig | None = None,
        cache_dir: Path | str | None = None,
        callbacks: pygit2.RemoteCallbacks | None = None,
    ) -> CoverageBuilder:
        """Builder over the diff of two branches (old defaults to the base branch)."""
        diff = diff_branch_to_branch(
            repo_location,
            new_branch,
            old_branch,
            config=config,
            cache_dir=cache_dir,
            callbacks=callbacks,
        )
        return cls(diff=diff, config=config)

    @classmethod
    def for_tags(
        cls,
        repo_location: Path | str,
        branch: str,
        new_tag: str,
        old_tag: str,
        *,
        config: DiffCovConfig | None = None,
        cache_dir: Path | str | None = None,
        callbacks: pygit2.RemoteCallbacks | None = None,
    ) -> CoverageBuilder:
        """Builder over the diff of two tags of ``branch``."""
        diff = diff_tag_to_tag(
            repo_location,
            branch,
            new_tag,
            old_tag,
            config=config,
            cache_dir=cache_dir,
            callbacks=callbacks,
        )
        return cls(diff=diff, config=config)

    @property
    def diff(self) -> DiffResult | None:
        return self._diff

    # =========================================================================
    # Input
    # =========================================================================

    def visit_coverage(self, coverage: CoverageRecord) -> None:
        """Add one class's coverage.

        Raises:
            ReconciliationConflictError: If ``report.strict_conflicts`` is set
                and a record with the same name but another class id was
                already visited.
        """
        known = self._class_ids.setdefault(coverage.name, coverage.class_id)
        if known != coverage.class_id and self._config.report.strict_conflicts:
            raise ReconciliationConflictError.conflicting_ids(
                coverage.name, [known, coverage.class_id]
            )
        self._records.append(coverage)
        self._reconciled = None

    # =========================================================================
    # Views
    # =========================================================================

    def get_classes(self) -> list[ReconciledClass]:
        """All reported classes, NO_MATCH ones included."""
        return list(self._reconcile())

    def get_no_match_classes(self) -> list[ReconciledClass]:
        """Classes whose execution data does not match the sources."""
        return [c for c in self._reconcile() if c.is_no_match]

    def get_source_files(self) -> list[SourceFileCoverage]:
        """Source files of the trusted classes."""
        return list(self._source_files(self._trusted()).values())

    def get_bundle(self, name: str) -> BundleCoverage:
        """Bundle of the trusted classes grouped by package.

        NO_MATCH classes are not counted; their names are listed separately.
        """
        trusted = self._trusted()
        source_files = self._source_files(trusted)

        classes_by_package: dict[str, list[ReconciledClass]] = {}
        for entry in trusted:
            classes_by_package.setdefault(entry.coverage.package_name, []).append(entry)
        files_by_package: dict[str, list[SourceFileCoverage]] = {}
        for source_file in source_files.values():
            files_by_package.setdefault(source_file.package_name, []).append(source_file)

        packages = tuple(
            PackageCoverage(
                name=package,
                classes=tuple(classes),
                source_files=tuple(files_by_package.get(package, [])),
            )
            for package, classes in sorted(classes_by_package.items())
        )
        no_match = tuple(c.name for c in self._reconcile() if c.is_no_match)
        return BundleCoverage(name=name, packages=packages, no_match=no_match)

    # =========================================================================
    # Internals
    # =========================================================================

    def _reconcile(self) -> list[ReconciledClass]:
        if self._reconciled is None:
            report = self._config.report
            self._reconciled = reconcile(
                self._records,
                self._diff,
                mode=report.mode,
                deleted_classes=report.deleted_classes,
                strict_conflicts=report.strict_conflicts,
            )
            log.info(
                "coverage_reconciled",
                records=len(self._records),
                reported=len(self._reconciled),
                no_match=sum(1 for c in self._reconciled if c.is_no_match),
            )
        return self._reconciled

    def _trusted(self) -> list[ReconciledClass]:
        return [c for c in self._reconcile() if not c.is_no_match]

    @staticmethod
    def _source_files(classes: list[ReconciledClass]) -> dict[str, SourceFileCoverage]:
        source_files: dict[str, SourceFileCoverage] = {}
        for entry in classes:
            coverage = entry.coverage
            if coverage.source_file_name is None:
                continue
            key = f"{coverage.package_name}/{coverage.source_file_name}"
            source_file = source_files.get(key)
            if source_file is None:
                source_file = SourceFileCoverage(
                    name=coverage.source_file_name, package_name=coverage.package_name
                )
                source_files[key] = source_file
            source_file.accumulate(coverage)
        return source_files
