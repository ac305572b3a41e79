"""Revision diff orchestration.

``CodeDiff`` resolves two revisions, fans the changed source files out to a
worker pool (fetch both sides, parse, diff methods) and folds the per-file
outcomes into one ``DiffResult`` on the calling thread, in the store's
changed-file order.

Failure policy:
- unresolvable revision or a failing changed-file listing is fatal
- a file that cannot be fetched or parsed is skipped with a diagnostic
- two files claiming one class name with different content become a
  conflict, or raise DuplicateClassError when configured to
"""

from __future__ import annotations

import contextvars
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pygit2
import structlog

from diffcov.config.models import DiffCovConfig
from diffcov.core.errors import ConfigError, InternalError
from diffcov.core.logging import clear_run_id, get_run_id, set_run_id
from diffcov.diff.errors import DiffCancelledError, DuplicateClassError
from diffcov.diff.methods import diff_methods
from diffcov.diff.models import (
    ChangeKind,
    ClassConflict,
    ClassInfo,
    DeletedClass,
    Diagnostic,
    DiagnosticKind,
    DiffResult,
    SkippedFile,
)
from diffcov.git.errors import RevisionNotFoundError, RevisionStoreError
from diffcov.git.models import (
    ChangedPath,
    NotFound,
    NotPresent,
    Resolved,
    RevisionRef,
    TransientError,
)
from diffcov.git.store import RevisionStore, open_store
from diffcov.parsing.java import JavaParser, qualified_name_from_path
from diffcov.parsing.models import ParseFailure, StructuralUnit

log = structlog.get_logger(__name__)

# How often the coordinating thread re-checks the cancel flag while waiting.
_POLL_INTERVAL_SEC = 0.1


class _FileSkipped(Exception):
    """Raised inside a worker when one side of a file cannot be used."""

    def __init__(self, entry: SkippedFile, message: str) -> None:
        super().__init__(message)
        self.entry = entry
        self.message = message


@dataclass(frozen=True, slots=True)
class _FileOutcome:
    """What one changed file contributes to the aggregate."""

    path: str
    qualified_name: str | None = None  # class declared by the after side
    content_id: str | None = None
    class_info: ClassInfo | None = None
    deleted: DeletedClass | None = None
    skipped: SkippedFile | None = None
    diagnostic: Diagnostic | None = None


class CodeDiff:
    """Method-level diff between two revisions of a Java source tree.

    Usage::

        store = GitRevisionStore("/path/to/repo")
        result = CodeDiff(store).diff_branch_to_branch("feature/x", "master")
        for class_info in result:
            ...

    The store must tolerate concurrent calls from the worker threads.
    ``cancel()`` may be called from any thread to stop a diff in progress.
    """

    def __init__(
        self,
        store: RevisionStore,
        config: DiffCovConfig | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        self._store = store
        self._config = config or DiffCovConfig()
        self._timeout = timeout if timeout is not None else self._config.diff.diff_timeout_sec
        self._parser = JavaParser(
            signature=self._config.signature,
            source_roots=tuple(self._config.diff.source_roots),
        )
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()

    # =========================================================================
    # Public API
    # =========================================================================

    def diff_branch_to_branch(self, new_branch: str, old_branch: str | None = None) -> DiffResult:
        """Diff two branches; ``old_branch`` defaults to the configured base branch."""
        if old_branch is None:
            old_branch = self._config.diff.base_branch
        _require_name("new_branch", new_branch)
        _require_name("old_branch", old_branch)
        return self._run(old_branch, new_branch)

    def diff_tag_to_tag(self, branch: str, new_tag: str, old_tag: str) -> DiffResult:
        """Diff two tags.  ``branch`` must exist but is otherwise not compared."""
        _require_name("branch", branch)
        _require_name("new_tag", new_tag)
        _require_name("old_tag", old_tag)
        self._resolve(branch)
        return self._run(old_tag, new_tag)

    def diff_revisions(self, old: str, new: str) -> DiffResult:
        """Diff any two commit-ish revisions."""
        _require_name("old", old)
        _require_name("new", new)
        return self._run(old, new)

    def cancel(self) -> None:
        """Cancel the diff in progress, if any."""
        with self._lock:
            self._cancel_event.set()

    # =========================================================================
    # Run
    # =========================================================================

    def _run(self, old_name: str, new_name: str) -> DiffResult:
        with self._lock:
            self._cancel_event = threading.Event()
            cancel = self._cancel_event

        owns_run_id = get_run_id() is None
        if owns_run_id:
            set_run_id()
        try:
            return self._diff(old_name, new_name, cancel)
        finally:
            if owns_run_id:
                clear_run_id()

    def _diff(self, old_name: str, new_name: str, cancel: threading.Event) -> DiffResult:
        start = time.monotonic()
        old_ref = self._resolve(old_name)
        new_ref = self._resolve(new_name)

        changes = [c for c in self._store.changed_files(old_ref, new_ref) if self._is_source(c)]
        log.info(
            "diff_started",
            old=old_ref.name,
            old_commit=old_ref.short_id,
            new=new_ref.name,
            new_commit=new_ref.short_id,
            files=len(changes),
        )

        outcomes = self._diff_files(old_ref, new_ref, changes, cancel)
        result = self._aggregate(old_ref, new_ref, outcomes)

        log.info(
            "diff_completed",
            classes=len(result.classes),
            conflicts=len(result.conflicts),
            deleted=len(result.deleted_classes),
            skipped=len(result.skipped),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return result

    def _resolve(self, name: str) -> RevisionRef:
        result = self._store.resolve(name)
        if isinstance(result, Resolved):
            return result.ref
        if isinstance(result, NotFound):
            log.error("revision_not_found", revision=name)
            raise RevisionNotFoundError(name)
        if isinstance(result, TransientError):
            log.error("revision_store_error", revision=name, reason=result.reason)
            raise RevisionStoreError(name, result.reason)
        raise InternalError.unexpected("unrecognized resolve result", result=repr(result))

    def _is_source(self, change: ChangedPath) -> bool:
        diff_config = self._config.diff
        extensions = tuple(diff_config.source_extensions)
        paths = [change.path] if change.old_path is None else [change.path, change.old_path]
        if not any(p.endswith(extensions) for p in paths):
            return False
        if diff_config.include_test_sources:
            return True
        return not all(_is_test_path(p) for p in paths)

    # =========================================================================
    # Per-file phase (worker pool)
    # =========================================================================

    def _diff_files(
        self,
        old_ref: RevisionRef,
        new_ref: RevisionRef,
        changes: list[ChangedPath],
        cancel: threading.Event,
    ) -> list[_FileOutcome]:
        if not changes:
            return []

        max_workers = self._config.diff.max_workers or os.cpu_count() or 1
        deadline = None if self._timeout is None else time.monotonic() + self._timeout
        executor = ThreadPoolExecutor(
            max_workers=min(max_workers, len(changes)),
            thread_name_prefix="diffcov-diff",
        )
        try:
            futures: list[Future[_FileOutcome | None]] = [
                executor.submit(
                    contextvars.copy_context().run,
                    self._diff_file,
                    old_ref,
                    new_ref,
                    change,
                    cancel,
                )
                for change in changes
            ]
            pending: set[Future[Any]] = set(futures)
            while pending:
                if cancel.is_set():
                    raise DiffCancelledError.cancelled(len(pending))
                wait_for = _POLL_INTERVAL_SEC
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        cancel.set()
                        log.warning("diff_timed_out", timeout_sec=self._timeout)
                        raise DiffCancelledError.timed_out(self._timeout or 0.0, len(pending))
                    wait_for = min(wait_for, remaining)
                _done, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)

            outcomes: list[_FileOutcome] = []
            for future in futures:
                outcome = future.result()
                if outcome is None:
                    raise DiffCancelledError.cancelled(0)
                outcomes.append(outcome)
            return outcomes
        except DiffCancelledError:
            cancel.set()
            log.warning("diff_cancelled")
            raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _diff_file(
        self,
        old_ref: RevisionRef,
        new_ref: RevisionRef,
        change: ChangedPath,
        cancel: threading.Event,
    ) -> _FileOutcome | None:
        """Fetch, parse and diff one file.  Returns None once cancelled."""
        if cancel.is_set():
            return None
        try:
            before = None
            if change.status != "added":
                before = self._load(old_ref, change.before_path)
            if cancel.is_set():
                return None
            after = None if change.is_tombstone else self._load(new_ref, change.path)
        except _FileSkipped as skip:
            log.warning(
                "file_skipped",
                path=skip.entry.path,
                kind=skip.entry.kind.value,
                reason=skip.message,
            )
            return _FileOutcome(
                path=change.path,
                skipped=skip.entry,
                diagnostic=Diagnostic(
                    kind=skip.entry.kind, path=skip.entry.path, message=skip.message
                ),
            )

        old_name = before.qualified_name if before is not None else None
        new_name = after.qualified_name if after is not None else None
        deleted = None
        if old_name is not None and old_name != new_name:
            deleted = DeletedClass(qualified_name=old_name, path=change.before_path)
            before = None

        if after is None or new_name is None:
            return _FileOutcome(path=change.path, deleted=deleted)

        methods = diff_methods(before, after)
        class_info = None
        if any(m.is_changed for m in methods):
            class_info = ClassInfo(
                qualified_name=new_name,
                path=change.path,
                package=after.package,
                class_name=after.class_name or "",
                change_kind=ChangeKind.ADDED if before is None else ChangeKind.MODIFIED,
                methods=tuple(methods),
                content_id=after.content_id,
                line_count=after.line_count,
            )
        log.debug(
            "file_diffed",
            path=change.path,
            status=change.status,
            changed_methods=sum(1 for m in methods if m.is_changed),
        )
        return _FileOutcome(
            path=change.path,
            qualified_name=new_name,
            content_id=after.content_id,
            class_info=class_info,
            deleted=deleted,
        )

    def _load(self, ref: RevisionRef, path: str) -> StructuralUnit | None:
        """Read and parse one side; None when the file is absent or empty."""
        result = self._store.read_file(ref, path)
        if isinstance(result, NotPresent):
            return None
        if isinstance(result, TransientError):
            hint = qualified_name_from_path(path, self._config.diff.source_roots)
            raise _FileSkipped(
                SkippedFile(path=path, qualified_name=hint, kind=DiagnosticKind.FETCH_FAILURE),
                f"read failed at {ref.name}: {result.reason}",
            )
        if not result.text.strip():
            return None

        parsed = self._parser.parse(result.text, path)
        if isinstance(parsed, ParseFailure):
            raise _FileSkipped(
                SkippedFile(
                    path=path,
                    qualified_name=parsed.qualified_name_hint,
                    kind=DiagnosticKind.PARSE_FAILURE,
                ),
                f"parse failed at {ref.name}: {parsed.reason}",
            )
        return parsed

    # =========================================================================
    # Aggregation (calling thread)
    # =========================================================================

    def _aggregate(
        self,
        old_ref: RevisionRef,
        new_ref: RevisionRef,
        outcomes: list[_FileOutcome],
    ) -> DiffResult:
        claims: dict[str, _FileOutcome] = {}
        conflicts: dict[str, list[str]] = {}
        classes: dict[str, ClassInfo] = {}
        deleted: list[DeletedClass] = []
        skipped: list[SkippedFile] = []
        diagnostics: list[Diagnostic] = []

        for outcome in outcomes:
            if outcome.skipped is not None:
                skipped.append(outcome.skipped)
            if outcome.diagnostic is not None:
                diagnostics.append(outcome.diagnostic)
            if outcome.deleted is not None:
                deleted.append(outcome.deleted)

            name = outcome.qualified_name
            if name is None:
                continue
            if name in conflicts:
                conflicts[name].append(outcome.path)
                continue

            first = claims.get(name)
            if first is None:
                claims[name] = outcome
                if outcome.class_info is not None:
                    classes[name] = outcome.class_info
                continue
            if first.content_id == outcome.content_id:
                log.debug("duplicate_class_identical", qualified_name=name, path=outcome.path)
                continue

            paths = [first.path, outcome.path]
            if self._config.diff.fail_on_duplicate_class:
                raise DuplicateClassError.for_paths(name, paths)
            conflicts[name] = paths
            classes.pop(name, None)

        for name, paths in conflicts.items():
            log.warning("class_conflict", qualified_name=name, paths=paths)
            diagnostics.append(
                Diagnostic(
                    kind=DiagnosticKind.DUPLICATE_CLASS,
                    path=paths[-1],
                    message=f"{name} declared by {', '.join(paths)}",
                )
            )

        # A class deleted from one file but declared by another was moved.
        deleted_classes = [d for d in deleted if d.qualified_name not in claims]

        return DiffResult(
            old_ref=old_ref,
            new_ref=new_ref,
            classes=tuple(classes.values()),
            conflicts=tuple(
                ClassConflict(qualified_name=name, paths=tuple(paths))
                for name, paths in conflicts.items()
            ),
            deleted_classes=tuple(deleted_classes),
            skipped=tuple(skipped),
            diagnostics=tuple(diagnostics),
        )


def _require_name(field: str, value: Any) -> None:
    if value is None:
        raise ConfigError.missing_required(field)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError.invalid_value(field, value, "must be a non-empty revision name")


def _is_test_path(path: str) -> bool:
    return "/src/test/" in "/" + path


# =============================================================================
# Convenience entry points
# =============================================================================


def diff_branch_to_branch(
    repo_location: Path | str,
    new_branch: str,
    old_branch: str | None = None,
    *,
    config: DiffCovConfig | None = None,
    cache_dir: Path | str | None = None,
    callbacks: pygit2.RemoteCallbacks | None = None,
) -> DiffResult:
    """Open the repository at ``repo_location`` and diff two branches."""
    store = open_store(repo_location, cache_dir=cache_dir, callbacks=callbacks)
    return CodeDiff(store, config).diff_branch_to_branch(new_branch, old_branch)


def diff_tag_to_tag(
    repo_location: Path | str,
    branch: str,
    new_tag: str,
    old_tag: str,
    *,
    config: DiffCovConfig | None = None,
    cache_dir: Path | str | None = None,
    callbacks: pygit2.RemoteCallbacks | None = None,
) -> DiffResult:
    """Open the repository at ``repo_location`` and diff two tags."""
    store = open_store(repo_location, cache_dir=cache_dir, callbacks=callbacks)
    return CodeDiff(store, config).diff_tag_to_tag(branch, new_tag, old_tag)
