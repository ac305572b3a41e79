"""Revision store module."""

from diffcov.git.errors import (
    AuthenticationError,
    GitError,
    NotARepositoryError,
    RemoteError,
    RevisionNotFoundError,
    RevisionStoreError,
)
from diffcov.git.models import (
    ChangedPath,
    FileText,
    NotFound,
    NotPresent,
    ReadResult,
    Resolved,
    ResolveResult,
    RevisionRef,
    TransientError,
)
from diffcov.git.store import GitRevisionStore, RevisionStore, is_remote_location, open_store

__all__ = [
    # Store
    "GitRevisionStore",
    "RevisionStore",
    "is_remote_location",
    "open_store",
    # Models
    "ChangedPath",
    "FileText",
    "NotFound",
    "NotPresent",
    "ReadResult",
    "Resolved",
    "ResolveResult",
    "RevisionRef",
    "TransientError",
    # Errors
    "AuthenticationError",
    "GitError",
    "NotARepositoryError",
    "RemoteError",
    "RevisionNotFoundError",
    "RevisionStoreError",
]
