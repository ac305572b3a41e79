"""Git module error types."""


class GitError(Exception):
    """Base error for revision store operations."""

    pass


class NotARepositoryError(GitError):
    """Path is not a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class RevisionNotFoundError(GitError):
    """Revision (branch, tag, commit) does not resolve in the store."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Revision not found: {name}")
        self.name = name


class RevisionStoreError(GitError):
    """The store failed while resolving or listing a revision."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Revision store error ({name}): {reason}")
        self.name = name
        self.reason = reason


class RemoteError(GitError):
    """Error communicating with remote."""

    def __init__(self, remote: str, message: str) -> None:
        super().__init__(f"Remote error ({remote}): {message}")
        self.remote = remote


class AuthenticationError(GitError):
    """Authentication failed for remote operation."""

    def __init__(self, remote: str, operation: str | None = None) -> None:
        op_part = f" during {operation}" if operation else ""
        super().__init__(f"Authentication failed for remote {remote!r}{op_part}")
        self.remote = remote
        self.operation = operation
