"""Class-centric coverage data model.

Execution data arrives per compiled class (``CoverageRecord``), keyed by the
class's qualified name and the identity of its compiled form.  Reconciliation
against a revision diff produces ``ReconciledClass`` entries; source-file,
package and bundle views aggregate the trusted ones for a report renderer.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from diffcov.diff.models import ClassInfo


class CoverageParseError(Exception):
    """Error parsing coverage data."""

    pass


LineStatus = Literal["empty", "not_covered", "partly_covered", "fully_covered"]


@dataclass(frozen=True, slots=True)
class CoverageCounter:
    """Missed/covered pair for one coverage metric."""

    missed: int = 0
    covered: int = 0

    @property
    def total(self) -> int:
        return self.missed + self.covered

    @property
    def ratio(self) -> float:
        """Fraction covered (0.0 to 1.0); 0.0 when nothing is counted."""
        if self.total == 0:
            return 0.0
        return self.covered / self.total

    def __add__(self, other: CoverageCounter) -> CoverageCounter:
        return CoverageCounter(self.missed + other.missed, self.covered + other.covered)


@dataclass(frozen=True, slots=True)
class LineCoverage:
    """Instruction and branch counters of one source line."""

    line: int
    missed_instructions: int = 0
    covered_instructions: int = 0
    missed_branches: int = 0
    covered_branches: int = 0

    @property
    def status(self) -> LineStatus:
        if self.covered_instructions == 0 and self.missed_instructions == 0:
            return "empty"
        if self.covered_instructions == 0:
            return "not_covered"
        if self.missed_instructions == 0 and self.missed_branches == 0:
            return "fully_covered"
        return "partly_covered"

    @property
    def is_covered(self) -> bool:
        return self.covered_instructions > 0

    def __add__(self, other: LineCoverage) -> LineCoverage:
        return LineCoverage(
            line=self.line,
            missed_instructions=self.missed_instructions + other.missed_instructions,
            covered_instructions=self.covered_instructions + other.covered_instructions,
            missed_branches=self.missed_branches + other.missed_branches,
            covered_branches=self.covered_branches + other.covered_branches,
        )


@dataclass(frozen=True, slots=True)
class MethodCoverage:
    """Method entry of a compiled class."""

    name: str  # JVM name, "<init>" for constructors
    desc: str  # JVM descriptor, e.g. "(ILjava/lang/String;)V"
    line: int  # first line, 0 when the class has no debug info
    hits: int


@dataclass(frozen=True, slots=True)
class CoverageRecord:
    """Execution data of one compiled class.

    ``name`` accepts the JVM form (``pkg/Foo$Inner``) and is stored dotted
    (``pkg.Foo$Inner``).  ``class_id`` identifies the compiled form: two
    records with one name and different ids came from different builds.
    """

    name: str
    class_id: str
    source_file_name: str | None = None
    lines: dict[int, LineCoverage] = field(default_factory=dict)
    methods: tuple[MethodCoverage, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.replace("/", "."))

    @property
    def package_name(self) -> str:
        return self.name.rpartition(".")[0]

    @property
    def simple_name(self) -> str:
        return self.name.rpartition(".")[2]

    @property
    def outer_name(self) -> str:
        """Top-level class name: ``pkg.Foo`` for ``pkg.Foo$Inner$1``."""
        return self.name.partition("$")[0]

    @property
    def max_line(self) -> int:
        return max(self.lines, default=0)

    @property
    def has_line_data(self) -> bool:
        return bool(self.lines)

    @property
    def instruction_counter(self) -> CoverageCounter:
        return CoverageCounter(
            missed=sum(lc.missed_instructions for lc in self.lines.values()),
            covered=sum(lc.covered_instructions for lc in self.lines.values()),
        )

    @property
    def branch_counter(self) -> CoverageCounter:
        return CoverageCounter(
            missed=sum(lc.missed_branches for lc in self.lines.values()),
            covered=sum(lc.covered_branches for lc in self.lines.values()),
        )

    @property
    def line_counter(self) -> CoverageCounter:
        counted = [lc for lc in self.lines.values() if lc.status != "empty"]
        covered = sum(1 for lc in counted if lc.is_covered)
        return CoverageCounter(missed=len(counted) - covered, covered=covered)

    @property
    def method_counter(self) -> CoverageCounter:
        covered = sum(1 for m in self.methods if m.hits > 0)
        return CoverageCounter(missed=len(self.methods) - covered, covered=covered)

    def restrict(self, keep_line: Callable[[int], bool]) -> CoverageRecord:
        """Copy holding only lines, and methods starting on lines, that pass ``keep_line``."""
        return CoverageRecord(
            name=self.name,
            class_id=self.class_id,
            source_file_name=self.source_file_name,
            lines={nr: lc for nr, lc in self.lines.items() if keep_line(nr)},
            methods=tuple(m for m in self.methods if m.line > 0 and keep_line(m.line)),
        )


# =============================================================================
# Reconciliation output
# =============================================================================


class ReconcileStatus(str, Enum):
    """How far a class's coverage can be trusted against the diff."""

    MATCHED_FULL = "matched_full"  # reported unfiltered
    MATCHED_PARTIAL = "matched_partial"  # narrowed to changed methods
    NO_MATCH = "no_match"  # execution data does not match the sources


@dataclass(frozen=True, slots=True)
class ReconciledClass:
    """One reported class."""

    record: CoverageRecord  # merged input
    coverage: CoverageRecord  # narrowed for MATCHED_PARTIAL, else the input
    class_info: ClassInfo | None
    status: ReconcileStatus
    reason: str

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def is_no_match(self) -> bool:
        return self.status is ReconcileStatus.NO_MATCH


# =============================================================================
# Aggregated views
# =============================================================================


@dataclass(slots=True)
class SourceFileCoverage:
    """Coverage of one source file, summed over the classes compiled from it."""

    name: str  # file name, e.g. "Foo.java"
    package_name: str
    lines: dict[int, LineCoverage] = field(default_factory=dict)
    class_names: list[str] = field(default_factory=list)
    method_counter: CoverageCounter = field(default_factory=CoverageCounter)

    @property
    def key(self) -> str:
        return f"{self.package_name.replace('.', '/')}/{self.name}"

    def accumulate(self, coverage: CoverageRecord) -> None:
        for nr, lc in coverage.lines.items():
            existing = self.lines.get(nr)
            self.lines[nr] = lc if existing is None else existing + lc
        self.class_names.append(coverage.name)
        self.method_counter = self.method_counter + coverage.method_counter

    @property
    def line_counter(self) -> CoverageCounter:
        counted = [lc for lc in self.lines.values() if lc.status != "empty"]
        covered = sum(1 for lc in counted if lc.is_covered)
        return CoverageCounter(missed=len(counted) - covered, covered=covered)

    @property
    def branch_counter(self) -> CoverageCounter:
        return CoverageCounter(
            missed=sum(lc.missed_branches for lc in self.lines.values()),
            covered=sum(lc.covered_branches for lc in self.lines.values()),
        )


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate coverage statistics."""

    lines_found: int
    lines_hit: int
    branches_found: int
    branches_hit: int
    methods_found: int
    methods_hit: int
    line_rate: float
    branch_rate: float
    method_rate: float


@dataclass(frozen=True, slots=True)
class PackageCoverage:
    """Trusted classes and source files of one package."""

    name: str
    classes: tuple[ReconciledClass, ...]
    source_files: tuple[SourceFileCoverage, ...]

    @property
    def line_counter(self) -> CoverageCounter:
        return _sum_counters(c.coverage.line_counter for c in self.classes)

    @property
    def branch_counter(self) -> CoverageCounter:
        return _sum_counters(c.coverage.branch_counter for c in self.classes)

    @property
    def method_counter(self) -> CoverageCounter:
        return _sum_counters(c.coverage.method_counter for c in self.classes)


@dataclass(frozen=True, slots=True)
class BundleCoverage:
    """Everything a renderer needs: packages plus the classes it must flag."""

    name: str
    packages: tuple[PackageCoverage, ...]
    no_match: tuple[str, ...] = ()

    @property
    def line_counter(self) -> CoverageCounter:
        return _sum_counters(p.line_counter for p in self.packages)

    @property
    def branch_counter(self) -> CoverageCounter:
        return _sum_counters(p.branch_counter for p in self.packages)

    @property
    def method_counter(self) -> CoverageCounter:
        return _sum_counters(p.method_counter for p in self.packages)

    @property
    def summary(self) -> CoverageSummary:
        lines = self.line_counter
        branches = self.branch_counter
        methods = self.method_counter
        return CoverageSummary(
            lines_found=lines.total,
            lines_hit=lines.covered,
            branches_found=branches.total,
            branches_hit=branches.covered,
            methods_found=methods.total,
            methods_hit=methods.covered,
            line_rate=lines.ratio,
            branch_rate=branches.ratio,
            method_rate=methods.ratio,
        )


def _sum_counters(counters: Iterable[CoverageCounter]) -> CoverageCounter:
    total = CoverageCounter()
    for counter in counters:
        total = total + counter
    return total
