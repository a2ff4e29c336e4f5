"""Resolution state tracking for one scanned document.

A RelinkSession owns the current Reference values of one document. Workers
(the candidate search) only ever see immutable snapshots and hand back
ReferenceUpdate batches; the session applies them on the caller's thread.

Transitions:

    MISSING / AMBIGUOUS / NOT_FOUND --search--> UPDATED | AMBIGUOUS | NOT_FOUND | FAILED
    FAILED --search (retry_failed)--> same outcomes
    AMBIGUOUS --user picks a candidate--> UPDATED
    UPDATED (several candidates) --user re-picks--> UPDATED
    NOT_FOUND --user supplies a path--> UPDATED
    EXISTING: terminal
"""

import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from types import TracebackType

from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.document.walker import DEFAULT_RULES, ExtractionRules
from ymmp_relink.core.scanner import scan_document
from ymmp_relink.core.search.engine import search_candidates
from ymmp_relink.errors import (
    DocumentBusy,
    InvalidTransition,
    RelinkCancelled,
    RelinkError,
    SaveInProgress,
    SessionClosed,
)
from ymmp_relink.filesystem import LocalFileSystem
from ymmp_relink.models.reference import (
    SEARCHABLE_STATUSES,
    DocumentContext,
    ExecutionResult,
    Reference,
    ReferenceUpdate,
    RelinkStatus,
    RelinkSummary,
    SaveResult,
)
from ymmp_relink.protocols import FileSystemProtocol, ProgressCallback
from ymmp_relink.writer import PatchWriter

# Statuses a search result may overwrite.
_SEARCH_SOURCES = SEARCHABLE_STATUSES | {RelinkStatus.FAILED}

_open_documents: set[str] = set()
_open_lock = threading.Lock()


class RelinkSession:
    """Own the resolution state of one document from scan to save."""

    def __init__(
        self,
        context: DocumentContext,
        *,
        fs: FileSystemProtocol | None = None,
        scan_summary: RelinkSummary | None = None,
    ) -> None:
        self._key = str(context.source_path.resolve())
        with _open_lock:
            if self._key in _open_documents:
                msg = f"{context.source_path} is already open in another session"
                raise DocumentBusy(msg)
            _open_documents.add(self._key)

        self._context = context
        self._fs = fs or LocalFileSystem()
        self._references: dict[int, Reference] = {r.index: r for r in context.references}
        self._lock = threading.RLock()
        self._closed = False
        self.scan_summary = scan_summary or RelinkSummary()

    @classmethod
    def from_document(
        cls,
        path: str | Path,
        *,
        fs: FileSystemProtocol | None = None,
        rules: ExtractionRules = DEFAULT_RULES,
    ) -> "RelinkSession":
        """Scan a document and open a session on the result."""
        context, summary = scan_document(path, fs=fs, rules=rules)
        return cls(context, fs=fs, scan_summary=summary)

    def __enter__(self) -> "RelinkSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the document. Later mutations raise SessionClosed."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        with _open_lock:
            _open_documents.discard(self._key)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            msg = f"Session for {self._context.source_path} is closed; scan the document again"
            raise SessionClosed(msg)

    @property
    def source_path(self) -> Path:
        return self._context.source_path

    @property
    def references(self) -> tuple[Reference, ...]:
        with self._lock:
            return tuple(self._references[i] for i in sorted(self._references))

    def reference(self, index: int) -> Reference:
        with self._lock:
            try:
                return self._references[index]
            except KeyError:
                msg = f"No reference with index {index}"
                raise InvalidTransition(msg) from None

    def snapshot(self) -> DocumentContext:
        """The scanned context carrying the current reference states."""
        return self._context.with_references(self.references)

    def summary(self) -> RelinkSummary:
        """Counters for the current state of every reference."""
        summary = RelinkSummary()
        for reference in self.references:
            summary.count(reference.status)
        summary.scanned = len(self._references)
        return summary

    # --- search ---

    def search_targets(self, *, retry_failed: bool = False) -> tuple[Reference, ...]:
        statuses = _SEARCH_SOURCES if retry_failed else SEARCHABLE_STATUSES
        return tuple(r for r in self.references if r.status in statuses)

    def submit_search(
        self,
        executor: ThreadPoolExecutor,
        roots: Iterable[str | Path],
        *,
        cancel: CancelToken | None = None,
        on_progress: ProgressCallback | None = None,
        retry_failed: bool = False,
    ) -> "Future[ExecutionResult]":
        """Run a search on the executor against a snapshot of the references.

        The result is not applied; pass ``result.updates`` to ``apply`` from
        the thread that owns this session.
        """
        self._ensure_open()
        targets = self.search_targets(retry_failed=retry_failed)
        return executor.submit(
            search_candidates,
            targets,
            list(roots),
            fs=self._fs,
            cancel=cancel,
            on_progress=on_progress,
            retry_failed=retry_failed,
        )

    def search(
        self,
        roots: Iterable[str | Path],
        *,
        cancel: CancelToken | None = None,
        on_progress: ProgressCallback | None = None,
        retry_failed: bool = False,
    ) -> ExecutionResult:
        """Search in the calling thread and apply the result.

        On cancellation the updates computed so far are applied before
        RelinkCancelled propagates.
        """
        self._ensure_open()
        try:
            result = search_candidates(
                self.search_targets(retry_failed=retry_failed),
                roots,
                fs=self._fs,
                cancel=cancel,
                on_progress=on_progress,
                retry_failed=retry_failed,
            )
        except RelinkCancelled as e:
            if e.partial is not None:
                self.apply(e.partial.updates)
            raise
        self.apply(result.updates)
        return result

    def apply(self, updates: Iterable[ReferenceUpdate]) -> int:
        """Apply a batch of search updates. Returns how many were applied.

        An unknown index rejects the whole batch. An update for a reference
        that is no longer searchable (the user resolved it meanwhile) is
        skipped.
        """
        self._ensure_open()
        updates = list(updates)
        with self._lock:
            unknown = [u.index for u in updates if u.index not in self._references]
            if unknown:
                msg = f"Updates refer to unknown references: {unknown!r}"
                raise InvalidTransition(msg)

            staged: dict[int, Reference] = {}
            for update in updates:
                current = staged.get(update.index, self._references[update.index])
                if current.status not in _SEARCH_SOURCES:
                    logger.warning(
                        "Skipping stale update for #{} ({} -> {})",
                        update.index,
                        current.status.name,
                        update.status.name,
                    )
                    continue
                staged[update.index] = current.apply(update)
            self._references.update(staged)
        logger.debug("Applied {} of {} updates", len(staged), len(updates))
        return len(staged)

    # --- user decisions ---

    def select_candidate(self, index: int, candidate: str) -> Reference:
        """Resolve an AMBIGUOUS reference (or re-pick an UPDATED one) to a candidate."""
        self._ensure_open()
        with self._lock:
            current = self.reference(index)
            can_pick = current.status is RelinkStatus.AMBIGUOUS or (
                current.status is RelinkStatus.UPDATED and len(current.candidates) > 1
            )
            if not can_pick:
                msg = f"Reference #{index} is {current.status.name}; nothing to choose"
                raise InvalidTransition(msg)
            if candidate not in current.candidates:
                msg = f"{candidate!r} is not a candidate of reference #{index}"
                raise InvalidTransition(msg)
            updated = replace(
                current,
                status=RelinkStatus.UPDATED,
                selected_candidate=candidate,
                message="selected by user",
            )
            self._references[index] = updated
        logger.info("Selected: {} -> {}", current.original_path, candidate)
        return updated

    def assign_path(self, index: int, path: str) -> Reference:
        """Resolve a NOT_FOUND reference to a path the user supplied."""
        self._ensure_open()
        with self._lock:
            current = self.reference(index)
            if current.status is not RelinkStatus.NOT_FOUND:
                msg = f"Reference #{index} is {current.status.name}, only NOT_FOUND takes a path"
                raise InvalidTransition(msg)
            if not self._fs.probe_file(path):
                msg = f"{path!r} is not a readable file"
                raise InvalidTransition(msg)
            updated = replace(
                current,
                status=RelinkStatus.UPDATED,
                candidates=(path,),
                selected_candidate=path,
                message="assigned by user",
            )
            self._references[index] = updated
        logger.info("Assigned: {} -> {}", current.original_path, path)
        return updated

    # --- save ---

    def save(
        self,
        cancel: CancelToken | None = None,
        *,
        writer: PatchWriter | None = None,
    ) -> SaveResult:
        """Write accepted references back to the document.

        The session is closed afterwards unless the save was a dry run or
        was cancelled.
        """
        self._ensure_open()
        writer = writer or PatchWriter()
        try:
            result = writer.save(self.snapshot(), cancel)
        except RelinkCancelled:
            logger.info("Relink save cancelled: {}", self.source_path)
            raise
        except SaveInProgress:
            # The running save owns the session; it closes it when done.
            logger.warning("Relink save rejected, another save is running: {}", self.source_path)
            raise
        except RelinkError:
            logger.exception("Relink save failed: {}", self.source_path)
            self.close()
            raise
        if not result.dry_run:
            self.close()
        return result
