"""Revision store: the version-control capability the diff core consumes.

``RevisionStore`` is the narrow protocol; ``GitRevisionStore`` implements it
on pygit2. Transport and credentials are the caller's business: remote
operations take pre-built ``pygit2.RemoteCallbacks``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Any, Protocol

import pygit2
import structlog

from diffcov.git.errors import (
    AuthenticationError,
    NotARepositoryError,
    RemoteError,
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

log = structlog.get_logger(__name__)

_REMOTE_PREFIXES = ("http://", "https://", "ssh://", "git://", "file://", "git@")


class RevisionStore(Protocol):
    """Snapshot access required by the diff core.

    Implementations must be safe to call from several worker threads at once.
    """

    def resolve(self, name: str) -> ResolveResult:
        """Resolve a branch, tag or commit-ish to a snapshot."""
        ...

    def changed_files(self, old: RevisionRef, new: RevisionRef) -> list[ChangedPath]:
        """List paths added, modified, renamed or deleted between two snapshots.

        Raises:
            RevisionStoreError: If the store cannot compute the listing.
        """
        ...

    def read_file(self, ref: RevisionRef, path: str) -> ReadResult:
        """Read one file's text at a snapshot."""
        ...


def is_remote_location(location: str | Path) -> bool:
    return str(location).startswith(_REMOTE_PREFIXES)


class GitRevisionStore:
    """pygit2-backed revision store.

    Each thread gets its own ``pygit2.Repository`` handle; libgit2 repository
    objects are not meant to be shared across threads.
    """

    def __init__(self, repo_path: Path | str, *, remote: str | None = None) -> None:
        self._path = str(Path(repo_path))
        self._remote = remote
        self._local = threading.local()
        try:
            self._local.repo = pygit2.Repository(self._path)
        except pygit2.GitError as e:
            raise NotARepositoryError(self._path) from e

    @classmethod
    def clone(
        cls,
        url: str,
        dest: Path | str,
        callbacks: pygit2.RemoteCallbacks | None = None,
    ) -> GitRevisionStore:
        """Clone a remote location (bare) and open it as a store."""
        try:
            pygit2.clone_repository(url, str(dest), bare=True, callbacks=callbacks)
        except pygit2.GitError as e:
            msg = str(e).lower()
            if "authentication" in msg or "credential" in msg:
                raise AuthenticationError(url, "clone") from e
            raise RemoteError(url, f"clone failed: {e}") from e
        log.info("repository_cloned", url=url, dest=str(dest))
        return cls(dest, remote="origin")

    @property
    def path(self) -> str:
        return self._path

    def _repo(self) -> pygit2.Repository:
        repo: pygit2.Repository | None = getattr(self._local, "repo", None)
        if repo is None:
            repo = pygit2.Repository(self._path)
            self._local.repo = repo
        return repo

    # =========================================================================
    # Remote refresh
    # =========================================================================

    def fetch(
        self,
        remote: str = "origin",
        callbacks: pygit2.RemoteCallbacks | None = None,
    ) -> None:
        """Fetch from remote so remote-tracking refs are current."""
        self._run_remote_operation(
            remote, "fetch", partial(pygit2.Remote.fetch, callbacks=callbacks)
        )
        log.info("remote_fetched", remote=remote)

    def _run_remote_operation(
        self,
        remote_name: str,
        op_name: str,
        operation: Callable[[pygit2.Remote], Any],
    ) -> Any:
        repo = self._repo()
        if remote_name not in [r.name for r in repo.remotes]:
            raise RemoteError(remote_name, "Remote not found")
        try:
            return operation(repo.remotes[remote_name])
        except pygit2.GitError as e:
            msg = str(e).lower()
            if "authentication" in msg or "credential" in msg:
                raise AuthenticationError(remote_name, op_name) from e
            raise RemoteError(remote_name, f"{op_name} failed: {e}") from e

    # =========================================================================
    # RevisionStore
    # =========================================================================

    def resolve(self, name: str) -> ResolveResult:
        repo = self._repo()
        candidates = [name]
        if self._remote:
            candidates.append(f"{self._remote}/{name}")

        for candidate in candidates:
            try:
                obj, _ref = repo.resolve_refish(candidate)
            except (KeyError, ValueError):
                continue
            except pygit2.GitError as e:
                return TransientError(name, str(e))
            try:
                commit = obj.peel(pygit2.Commit)
            except (ValueError, pygit2.GitError):
                # tags and revspecs may name a tree or blob
                return NotFound(name)
            return Resolved(
                RevisionRef(name=name, commit_id=str(commit.id), tree_id=str(commit.tree_id))
            )
        return NotFound(name)

    def changed_files(self, old: RevisionRef, new: RevisionRef) -> list[ChangedPath]:
        if old.tree_id == new.tree_id:
            return []
        repo = self._repo()
        try:
            diff = repo.diff(repo[old.tree_id], repo[new.tree_id])
            diff.find_similar()
        except (pygit2.GitError, KeyError) as e:
            raise RevisionStoreError(f"{old.name}..{new.name}", str(e)) from e
        return [ChangedPath.from_pygit2(delta) for delta in diff.deltas]

    def read_file(self, ref: RevisionRef, path: str) -> ReadResult:
        repo = self._repo()
        try:
            entry = repo[ref.tree_id][path]
        except KeyError:
            return NotPresent(path)
        except pygit2.GitError as e:
            return TransientError(path, str(e))

        blob = repo[entry.id]
        if not isinstance(blob, pygit2.Blob):
            return NotPresent(path)
        return FileText(blob.data.decode("utf-8-sig", errors="replace"))


def open_store(
    location: Path | str,
    *,
    cache_dir: Path | str | None = None,
    callbacks: pygit2.RemoteCallbacks | None = None,
) -> GitRevisionStore:
    """Open a store for a local path, or clone/refresh a remote location.

    Remote locations need ``cache_dir``; an existing clone there is fetched
    instead of cloned again.
    """
    if not is_remote_location(location):
        return GitRevisionStore(location)
    if cache_dir is None:
        raise ValueError(f"cache_dir is required for remote location {location}")

    dest = Path(cache_dir)
    if dest.exists() and any(dest.iterdir()):
        store = GitRevisionStore(dest, remote="origin")
        store.fetch("origin", callbacks)
        return store
    return GitRevisionStore.clone(str(location), dest, callbacks)
