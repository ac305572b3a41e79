"""Reconcile compiled-class coverage against a revision diff.

Each class is matched to the diff by qualified name (nested and anonymous
classes through their top-level class, secondary top-level types through
their source file) and either narrowed to the changed method line ranges,
reported unfiltered, dropped, or flagged NO_MATCH when the execution data
cannot be trusted against the sources.

Pure: no I/O, no shared state.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePosixPath

import structlog

from diffcov.config.models import DeletedClassPolicy, ReportMode
from diffcov.core.errors import ReconciliationConflictError
from diffcov.coverage.merge import merge_records
from diffcov.coverage.models import (
    CoverageRecord,
    MethodCoverage,
    ReconciledClass,
    ReconcileStatus,
)
from diffcov.diff.models import ClassInfo, DiffResult
from diffcov.parsing.java import normalize_type

log = structlog.get_logger(__name__)

# NO_MATCH / match reasons
REASON_NO_DIFF = "no_diff"
REASON_UNCHANGED = "unchanged"
REASON_CHANGED = "changed_methods"
REASON_CONFLICTING_ID = "conflicting_class_id"
REASON_DUPLICATE_CLASS = "duplicate_class"
REASON_SOURCE_SKIPPED = "source_skipped"
REASON_CLASS_DELETED = "class_deleted"
REASON_NO_LINE_DATA = "no_line_data"
REASON_LINE_COUNT = "line_count_exceeded"
REASON_METHOD_POSITION = "method_position_mismatch"

_PRIMITIVES = {
    "B": "byte",
    "C": "char",
    "D": "double",
    "F": "float",
    "I": "int",
    "J": "long",
    "S": "short",
    "Z": "boolean",
    "V": "void",
}


def reconcile(
    records: Iterable[CoverageRecord],
    diff: DiffResult | None,
    *,
    mode: ReportMode = "incremental",
    deleted_classes: DeletedClassPolicy = "omit",
    strict_conflicts: bool = False,
) -> list[ReconciledClass]:
    """Classify every coverage record against ``diff``.

    Args:
        records: Coverage records, possibly several per class.
        diff: Revision diff, or None to report every class unfiltered.
        mode: ``incremental`` drops classes the diff does not touch,
              ``full`` reports them unfiltered.
        deleted_classes: ``omit`` drops coverage of deleted classes,
              ``no_match`` reports it as NO_MATCH.
        strict_conflicts: Raise instead of flagging records that share a
              name but not a class id.

    Returns:
        Reported classes, in first-seen name order.

    Raises:
        ReconciliationConflictError: On conflicting ids with ``strict_conflicts``.
    """
    groups: dict[str, dict[str, list[CoverageRecord]]] = {}
    for record in records:
        groups.setdefault(record.name, {}).setdefault(record.class_id, []).append(record)

    index = _DiffIndex(diff) if diff is not None else None
    result: list[ReconciledClass] = []

    for name, by_id in groups.items():
        merged = [merge_records(group) for group in by_id.values()]

        if len(merged) > 1:
            if strict_conflicts:
                raise ReconciliationConflictError.conflicting_ids(name, list(by_id))
            log.warning("reconcile_no_match", name=name, reason=REASON_CONFLICTING_ID)
            result.extend(_no_match(record, None, REASON_CONFLICTING_ID) for record in merged)
            continue

        record = merged[0]
        if index is None:
            result.append(
                _reported(record, record, None, ReconcileStatus.MATCHED_FULL, REASON_NO_DIFF)
            )
            continue

        entry = _classify(record, index, mode, deleted_classes)
        if entry is not None:
            result.append(entry)

    log.debug(
        "reconcile_completed",
        records=sum(len(g) for g in groups.values()),
        reported=len(result),
        no_match=sum(1 for r in result if r.is_no_match),
    )
    return result


def _classify(
    record: CoverageRecord,
    index: _DiffIndex,
    mode: ReportMode,
    deleted_policy: DeletedClassPolicy,
) -> ReconciledClass | None:
    names = {record.name, record.outer_name}

    if names & index.diff.conflict_names:
        return _logged_no_match(record, None, REASON_DUPLICATE_CLASS)
    if names & index.diff.skipped_names:
        return _logged_no_match(record, None, REASON_SOURCE_SKIPPED)

    class_info = index.match(record)
    if class_info is not None:
        reason = _incompatibility(record, class_info)
        if reason is not None:
            return _logged_no_match(record, class_info, reason)
        narrowed = record.restrict(class_info.is_changed_line)
        return _reported(
            record, narrowed, class_info, ReconcileStatus.MATCHED_PARTIAL, REASON_CHANGED
        )

    if names & index.diff.deleted_names:
        if deleted_policy == "no_match":
            return _logged_no_match(record, None, REASON_CLASS_DELETED)
        return None

    if mode == "full":
        return _reported(record, record, None, ReconcileStatus.MATCHED_FULL, REASON_UNCHANGED)
    return None


# =============================================================================
# Compatibility checks
# =============================================================================


def _incompatibility(record: CoverageRecord, class_info: ClassInfo) -> str | None:
    """Name of the first failing check, or None when the record fits the sources."""
    if not record.has_line_data:
        return REASON_NO_LINE_DATA
    if record.max_line > class_info.line_count:
        return REASON_LINE_COUNT

    prefix = _member_prefix(record, class_info)
    # Descriptors carry erased types, so compare against erased parameter lists.
    by_erased = {
        (m.name, tuple(normalize_type(p) for p in m.parameter_types)): m
        for m in class_info.changed_methods
    }

    for method in record.methods:
        if method.line <= 0:
            continue
        source_name = _source_method_name(method, record, prefix)
        if source_name is None:
            continue
        params = decode_parameter_types(method.desc)
        if params is None:
            continue
        info = by_erased.get((source_name, params))
        if info is None:
            continue
        if method.name == "<init>":
            # Field initializers are compiled into every constructor, so the
            # first instrumented line may sit above the declaration.
            if method.line > info.end_line:
                return REASON_METHOD_POSITION
        elif not info.contains(method.line):
            return REASON_METHOD_POSITION
    return None


def _member_prefix(record: CoverageRecord, class_info: ClassInfo) -> str:
    """Prefix the parser puts on members of ``record``'s type within ``class_info``'s file."""
    if record.name == class_info.qualified_name:
        return ""
    if record.name.startswith(class_info.qualified_name + "$"):
        nested = record.name[len(class_info.qualified_name) + 1 :]
    else:
        nested = record.simple_name
    return nested.replace("$", ".") + "."


def _source_method_name(
    method: MethodCoverage, record: CoverageRecord, prefix: str
) -> str | None:
    if method.name == "<clinit>":
        return None
    if method.name == "<init>":
        return prefix + record.simple_name.rpartition("$")[2]
    return prefix + method.name


def decode_parameter_types(desc: str) -> tuple[str, ...] | None:
    """Decode a JVM method descriptor into simple source type names.

    ``(I[Ljava/lang/String;Ljava/util/Map$Entry;)V`` -> ``("int", "String[]", "Entry")``.
    Returns None for a malformed descriptor.
    """
    if not desc.startswith("("):
        return None
    end = desc.find(")")
    if end == -1:
        return None

    types: list[str] = []
    body = desc[1:end]
    i = 0
    while i < len(body):
        dims = 0
        while i < len(body) and body[i] == "[":
            dims += 1
            i += 1
        if i >= len(body):
            return None
        ch = body[i]
        if ch == "L":
            semi = body.find(";", i)
            if semi == -1:
                return None
            binary = body[i + 1 : semi]
            simple = binary.rpartition("/")[2].rpartition("$")[2]
            i = semi + 1
        elif ch in _PRIMITIVES:
            simple = _PRIMITIVES[ch]
            i += 1
        else:
            return None
        types.append(simple + "[]" * dims)
    return tuple(types)


# =============================================================================
# Helpers
# =============================================================================


class _DiffIndex:
    """Lookups from coverage record names to ClassInfo entries."""

    def __init__(self, diff: DiffResult) -> None:
        self.diff = diff
        self._by_source: dict[tuple[str, str], ClassInfo] = {}
        for class_info in diff.classes:
            key = (class_info.package, PurePosixPath(class_info.path).name)
            self._by_source.setdefault(key, class_info)

    def match(self, record: CoverageRecord) -> ClassInfo | None:
        class_info = self.diff.get(record.name) or self.diff.get(record.outer_name)
        if class_info is not None:
            return class_info
        if record.source_file_name:
            return self._by_source.get((record.package_name, record.source_file_name))
        return None


def _reported(
    record: CoverageRecord,
    coverage: CoverageRecord,
    class_info: ClassInfo | None,
    status: ReconcileStatus,
    reason: str,
) -> ReconciledClass:
    return ReconciledClass(
        record=record,
        coverage=coverage,
        class_info=class_info,
        status=status,
        reason=reason,
    )


def _no_match(
    record: CoverageRecord, class_info: ClassInfo | None, reason: str
) -> ReconciledClass:
    return _reported(record, record, class_info, ReconcileStatus.NO_MATCH, reason)


def _logged_no_match(
    record: CoverageRecord, class_info: ClassInfo | None, reason: str
) -> ReconciledClass:
    log.info("reconcile_no_match", name=record.name, reason=reason)
    return _no_match(record, class_info, reason)
