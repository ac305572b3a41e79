"""Builders for coverage records and hand-made diffs."""

from __future__ import annotations

from diffcov.coverage import CoverageRecord, LineCoverage, MethodCoverage
from diffcov.diff import (
    ChangeKind,
    ClassConflict,
    ClassInfo,
    DeletedClass,
    DiagnosticKind,
    DiffResult,
    MethodInfo,
    SkippedFile,
)
from diffcov.git import RevisionRef

OLD_REF = RevisionRef(name="master", commit_id="a" * 40, tree_id="1" * 40)
NEW_REF = RevisionRef(name="feature", commit_id="b" * 40, tree_id="2" * 40)


def line(nr: int, covered: int = 1, missed: int = 0, cb: int = 0, mb: int = 0) -> LineCoverage:
    return LineCoverage(
        line=nr,
        missed_instructions=missed,
        covered_instructions=covered,
        missed_branches=mb,
        covered_branches=cb,
    )


def record(
    name: str = "pkg/Foo",
    class_id: str = "id-1",
    *,
    covered: tuple[int, ...] = (),
    missed: tuple[int, ...] = (),
    methods: tuple[MethodCoverage, ...] = (),
    source: str | None = "Foo.java",
) -> CoverageRecord:
    """Record with one instruction per listed line."""
    lines = {nr: line(nr) for nr in covered}
    lines.update({nr: line(nr, covered=0, missed=1) for nr in missed})
    return CoverageRecord(
        name=name,
        class_id=class_id,
        source_file_name=source,
        lines=dict(sorted(lines.items())),
        methods=methods,
    )


def jvm_method(name: str, desc: str, nr: int, hits: int = 1) -> MethodCoverage:
    return MethodCoverage(name=name, desc=desc, line=nr, hits=hits)


def method_info(
    signature: str,
    start: int,
    end: int,
    kind: ChangeKind = ChangeKind.MODIFIED,
) -> MethodInfo:
    name, _, rest = signature.partition("(")
    params = rest.rstrip(")")
    return MethodInfo(
        signature=signature,
        name=name,
        parameter_types=tuple(p for p in params.split(",") if p),
        start_line=start,
        end_line=end,
        fingerprint=f"fp-{signature}",
        change_kind=kind,
    )


def class_info(
    qualified_name: str = "pkg.Foo",
    *methods: MethodInfo,
    line_count: int = 40,
    path: str | None = None,
) -> ClassInfo:
    package, _, simple = qualified_name.rpartition(".")
    return ClassInfo(
        qualified_name=qualified_name,
        path=path or f"src/main/java/{qualified_name.replace('.', '/')}.java",
        package=package,
        class_name=simple,
        change_kind=ChangeKind.MODIFIED,
        methods=methods,
        content_id=f"content-{qualified_name}",
        line_count=line_count,
    )


def diff_result(
    *classes: ClassInfo,
    conflicts: tuple[str, ...] = (),
    deleted: tuple[str, ...] = (),
    skipped: tuple[str, ...] = (),
) -> DiffResult:
    return DiffResult(
        old_ref=OLD_REF,
        new_ref=NEW_REF,
        classes=classes,
        conflicts=tuple(ClassConflict(n, ("a.java", "b.java")) for n in conflicts),
        deleted_classes=tuple(DeletedClass(n, f"{n}.java") for n in deleted),
        skipped=tuple(
            SkippedFile(f"{n}.java", n, DiagnosticKind.PARSE_FAILURE) for n in skipped
        ),
    )
