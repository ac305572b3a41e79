"""Pure per-file method diff.

Compares the methods of two structural units (before vs after) by signature
and classifies each one.  No git or parser access.

Change kinds:
- added: signature only in after
- modified: signature on both sides, fingerprint differs
- deleted: signature only in before
- unchanged: signature on both sides, same fingerprint (dropped from output)
"""

from __future__ import annotations

from diffcov.diff.models import ChangeKind, MethodInfo
from diffcov.parsing.models import ParsedMethod, StructuralUnit


def diff_methods(
    before: StructuralUnit | None,
    after: StructuralUnit | None,
) -> list[MethodInfo]:
    """Classify the methods of one file.

    Args:
        before: Unit parsed from the old snapshot, None if the file was absent.
        after: Unit parsed from the new snapshot, None if the file was removed.

    Returns:
        ADDED/MODIFIED methods in after declaration order, then DELETED
        methods in before declaration order.  UNCHANGED methods are omitted.
    """
    before_map: dict[str, ParsedMethod] = (
        {m.signature: m for m in before.methods} if before is not None else {}
    )
    after_map: dict[str, ParsedMethod] = (
        {m.signature: m for m in after.methods} if after is not None else {}
    )

    changes: list[MethodInfo] = []

    # Pass 1: additions and modifications, positioned in the after snapshot
    for signature, new in after_map.items():
        old = before_map.get(signature)
        if old is None:
            changes.append(_method_info(new, ChangeKind.ADDED))
        elif old.fingerprint != new.fingerprint:
            changes.append(_method_info(new, ChangeKind.MODIFIED))

    # Pass 2: deletions, positioned in the before snapshot
    for signature, old in before_map.items():
        if signature not in after_map:
            changes.append(_method_info(old, ChangeKind.DELETED))

    return changes


def _method_info(method: ParsedMethod, kind: ChangeKind) -> MethodInfo:
    return MethodInfo(
        signature=method.signature,
        name=method.name,
        parameter_types=method.parameter_types,
        start_line=method.start_line,
        end_line=method.end_line,
        fingerprint=method.fingerprint,
        change_kind=kind,
    )
