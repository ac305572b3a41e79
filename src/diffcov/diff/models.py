"""Data models for the method-level revision diff.

All result models are frozen dataclasses holding tuples, so a DiffResult is
an immutable value: two runs over the same revision pair compare equal.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from diffcov.git.models import RevisionRef


class ChangeKind(str, Enum):
    """How a method or class differs between two revisions."""

    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class DiagnosticKind(str, Enum):
    """Degraded-path events recorded alongside a successful diff."""

    FETCH_FAILURE = "fetch_failure"
    PARSE_FAILURE = "parse_failure"
    DUPLICATE_CLASS = "duplicate_class"


@dataclass(frozen=True, slots=True)
class MethodInfo:
    """One changed method.

    Lines come from the "after" snapshot for ADDED/MODIFIED and from the
    "before" snapshot for DELETED.
    """

    signature: str
    name: str
    parameter_types: tuple[str, ...]
    start_line: int
    end_line: int
    fingerprint: str
    change_kind: ChangeKind

    def __post_init__(self) -> None:
        if self.start_line < 1 or self.end_line < self.start_line:
            raise ValueError(
                f"Invalid line range for {self.signature}: {self.start_line}-{self.end_line}"
            )

    @property
    def is_changed(self) -> bool:
        """True for methods whose lines exist in the "after" snapshot."""
        return self.change_kind in (ChangeKind.ADDED, ChangeKind.MODIFIED)

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


@dataclass(frozen=True, slots=True)
class ClassInfo:
    """Per-class diff record for one source file."""

    qualified_name: str
    path: str
    package: str
    class_name: str
    change_kind: ChangeKind  # ADDED or MODIFIED
    methods: tuple[MethodInfo, ...]
    content_id: str  # digest of the "after" text
    line_count: int  # lines in the "after" text

    @property
    def class_file(self) -> str:
        """JVM path form, e.g. ``pkg/sub/Foo``."""
        return self.qualified_name.replace(".", "/")

    @property
    def changed_methods(self) -> tuple[MethodInfo, ...]:
        return tuple(m for m in self.methods if m.is_changed)

    @property
    def changed_line_ranges(self) -> tuple[tuple[int, int], ...]:
        return tuple((m.start_line, m.end_line) for m in self.changed_methods)

    def is_changed_line(self, line: int) -> bool:
        return any(m.contains(line) for m in self.changed_methods)

    def method(self, signature: str) -> MethodInfo | None:
        return next((m for m in self.methods if m.signature == signature), None)


@dataclass(frozen=True, slots=True)
class ClassConflict:
    """Two or more files claiming one qualified class name."""

    qualified_name: str
    paths: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DeletedClass:
    """A class whose source file no longer exists in the new revision."""

    qualified_name: str
    path: str


@dataclass(frozen=True, slots=True)
class SkippedFile:
    """A changed file lost to a fetch or parse failure."""

    path: str
    qualified_name: str  # derived from the path when parsing failed
    kind: DiagnosticKind


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A non-fatal problem encountered during a diff run."""

    kind: DiagnosticKind
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class DiffResult:
    """Method-level diff between two revisions.

    ``classes`` is ordered like the revision store's changed-file list.
    """

    old_ref: RevisionRef
    new_ref: RevisionRef
    classes: tuple[ClassInfo, ...] = ()
    conflicts: tuple[ClassConflict, ...] = ()
    deleted_classes: tuple[DeletedClass, ...] = ()
    skipped: tuple[SkippedFile, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    _index: dict[str, ClassInfo] = field(
        default_factory=dict, init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        index = {c.qualified_name: c for c in self.classes}
        if len(index) != len(self.classes):
            raise ValueError("ClassInfo qualified names must be unique within a DiffResult")
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.classes)

    def __iter__(self) -> Iterator[ClassInfo]:
        return iter(self.classes)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self._index

    @property
    def is_empty(self) -> bool:
        return not self.classes

    def get(self, qualified_name: str) -> ClassInfo | None:
        return self._index.get(qualified_name)

    @property
    def conflict_names(self) -> frozenset[str]:
        return frozenset(c.qualified_name for c in self.conflicts)

    @property
    def deleted_names(self) -> frozenset[str]:
        return frozenset(d.qualified_name for d in self.deleted_classes)

    @property
    def skipped_names(self) -> frozenset[str]:
        return frozenset(s.qualified_name for s in self.skipped)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view with deterministic ordering."""
        return {
            "old": {"name": self.old_ref.name, "commit": self.old_ref.commit_id},
            "new": {"name": self.new_ref.name, "commit": self.new_ref.commit_id},
            "classes": [
                {
                    "qualified_name": c.qualified_name,
                    "path": c.path,
                    "change": c.change_kind.value,
                    "content_id": c.content_id,
                    "methods": [
                        {
                            "signature": m.signature,
                            "change": m.change_kind.value,
                            "start_line": m.start_line,
                            "end_line": m.end_line,
                        }
                        for m in c.methods
                    ],
                }
                for c in self.classes
            ],
            "conflicts": [
                {"qualified_name": c.qualified_name, "paths": list(c.paths)}
                for c in self.conflicts
            ],
            "deleted_classes": [
                {"qualified_name": d.qualified_name, "path": d.path}
                for d in self.deleted_classes
            ],
            "skipped": [
                {"path": s.path, "qualified_name": s.qualified_name, "kind": s.kind.value}
                for s in self.skipped
            ],
            "diagnostics": [
                {"kind": d.kind.value, "path": d.path, "message": d.message}
                for d in self.diagnostics
            ],
        }
