"""Data models for structural parsing.

All models are frozen dataclasses: a parse result is a value, comparable
across runs.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ParsedMethod:
    """One method-like member as it appears in a single snapshot.

    ``signature`` is the identity key used to match the same method across
    snapshots.  ``fingerprint`` changes whenever the declaration's tokens
    change, and only then.
    """

    name: str  # member name, prefixed by nested type path ("Inner.run")
    parameter_types: tuple[str, ...]
    signature: str
    start_line: int
    end_line: int
    fingerprint: str
    return_type: str | None = None  # None for constructors


@dataclass(frozen=True, slots=True)
class StructuralUnit:
    """Parsed shape of one source file."""

    path: str
    package: str
    class_name: str | None  # None when the file declares no type
    methods: tuple[ParsedMethod, ...]
    line_count: int
    content_id: str

    @property
    def qualified_name(self) -> str | None:
        if self.class_name is None:
            return None
        return qualify(self.package, self.class_name)


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """A file whose structure could not be recovered unambiguously."""

    path: str
    reason: str
    qualified_name_hint: str  # derived from the path alone


def qualify(package: str, class_name: str) -> str:
    return f"{package}.{class_name}" if package else class_name
