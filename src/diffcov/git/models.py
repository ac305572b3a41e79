"""Revision store data models.

Lookups return tagged results rather than raising, so callers can tell a
missing revision or file apart from an I/O failure without inspecting
exception subtypes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import pygit2

ChangeStatus = Literal["added", "modified", "deleted", "renamed"]

_DELTA_STATUS_MAP: dict[int, ChangeStatus] = {
    pygit2.GIT_DELTA_ADDED: "added",
    pygit2.GIT_DELTA_DELETED: "deleted",
    pygit2.GIT_DELTA_MODIFIED: "modified",
    pygit2.GIT_DELTA_RENAMED: "renamed",
    pygit2.GIT_DELTA_COPIED: "added",
}


@dataclass(frozen=True, slots=True)
class RevisionRef:
    """A revision name pinned to the immutable commit it resolved to."""

    name: str
    commit_id: str
    tree_id: str

    @property
    def short_id(self) -> str:
        return self.commit_id[:7]


@dataclass(frozen=True, slots=True)
class ChangedPath:
    """A path that differs between two revisions."""

    path: str
    status: ChangeStatus
    old_path: str | None = None  # set for renames

    @property
    def is_tombstone(self) -> bool:
        return self.status == "deleted"

    @property
    def before_path(self) -> str:
        """Path to read on the old side."""
        return self.old_path or self.path

    @classmethod
    def from_pygit2(cls, delta: pygit2.DiffDelta) -> ChangedPath:
        status = _DELTA_STATUS_MAP.get(delta.status, "modified")
        if status == "deleted":
            return cls(path=delta.old_file.path, status=status)
        old_path = delta.old_file.path if status == "renamed" else None
        return cls(path=delta.new_file.path, status=status, old_path=old_path)


# =============================================================================
# Tagged lookup results
# =============================================================================


@dataclass(frozen=True, slots=True)
class Resolved:
    """A revision name resolved to a snapshot."""

    ref: RevisionRef


@dataclass(frozen=True, slots=True)
class NotFound:
    """A revision name that does not resolve."""

    name: str


@dataclass(frozen=True, slots=True)
class FileText:
    """File content at one revision."""

    text: str


@dataclass(frozen=True, slots=True)
class NotPresent:
    """The path does not exist at the revision."""

    path: str


@dataclass(frozen=True, slots=True)
class TransientError:
    """The store could not answer; the caller decides whether that is fatal."""

    name: str
    reason: str


ResolveResult = Resolved | NotFound | TransientError
ReadResult = FileText | NotPresent | TransientError
