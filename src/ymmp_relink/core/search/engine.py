"""Propose replacement paths for missing references."""

from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.search.cache import SearchCache
from ymmp_relink.errors import RelinkCancelled
from ymmp_relink.filesystem import LocalFileSystem
from ymmp_relink.models.reference import (
    SEARCHABLE_STATUSES,
    ExecutionResult,
    Reference,
    ReferenceUpdate,
    RelinkStatus,
    RelinkSummary,
    SearchProgress,
)
from ymmp_relink.protocols import FileSystemProtocol, ProgressCallback


def normalize_roots(roots: Iterable[str | Path]) -> list[str]:
    """Drop blank roots and case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for root in roots:
        text = str(root).strip()
        if not text:
            continue
        key = text.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(text)
    return result


def classify_candidates(index: int, candidates: tuple[str, ...]) -> ReferenceUpdate:
    """Turn a candidate list into a status update.

    None found is NOT_FOUND, exactly one is auto-selected (UPDATED), more
    than one is AMBIGUOUS and left for the user.
    """
    if not candidates:
        return ReferenceUpdate(
            index=index, status=RelinkStatus.NOT_FOUND, message="no candidates found"
        )
    if len(candidates) == 1:
        return ReferenceUpdate(
            index=index,
            status=RelinkStatus.UPDATED,
            candidates=candidates,
            selected_candidate=candidates[0],
            message="auto-updated",
        )
    return ReferenceUpdate(
        index=index,
        status=RelinkStatus.AMBIGUOUS,
        candidates=candidates,
        message=f"multiple candidates: {len(candidates)}",
    )


def search_candidates(
    references: Iterable[Reference],
    roots: Iterable[str | Path],
    *,
    fs: FileSystemProtocol | None = None,
    cancel: CancelToken | None = None,
    on_progress: ProgressCallback | None = None,
    retry_failed: bool = False,
) -> ExecutionResult:
    """Search the roots for files named like each unresolved reference.

    Args:
        references: References to consider. Only MISSING, AMBIGUOUS and
            NOT_FOUND ones are searched (plus FAILED with retry_failed).
        roots: Directories to search recursively.
        fs: Filesystem to walk.
        cancel: Checked before each reference and during directory walks.
        on_progress: Called after each processed reference.
        retry_failed: Also search references whose status is FAILED.

    Returns:
        ExecutionResult with counters and one update per searched reference.

    Raises:
        RelinkCancelled: cancel was set. ``partial`` holds the updates made so far.
    """
    fs = fs or LocalFileSystem()
    references = list(references)
    searchable = set(SEARCHABLE_STATUSES)
    if retry_failed:
        searchable.add(RelinkStatus.FAILED)
    targets = [r for r in references if r.status in searchable]

    summary = RelinkSummary(
        scanned=len(references),
        missing=len(targets),
        skipped=sum(1 for r in references if r.status is RelinkStatus.EXISTING),
    )
    normalized = normalize_roots(roots)
    cache = SearchCache(normalized, fs, cancel=cancel)
    updates: list[ReferenceUpdate] = []
    logger.info("Relink search start: {} references, {} roots", len(targets), len(normalized))

    try:
        for done, reference in enumerate(targets, start=1):
            if cancel is not None:
                cancel.raise_if_cancelled()
            try:
                candidates = cache.lookup(reference.file_name)
            except RelinkCancelled:
                raise
            except Exception as e:
                logger.exception("Failed: {} -> {}", reference.original_path, e)
                update = ReferenceUpdate(
                    index=reference.index, status=RelinkStatus.FAILED, message=str(e)
                )
            else:
                update = classify_candidates(reference.index, candidates)
                logger.info(
                    "{}: {} -> {}",
                    update.status.name,
                    reference.original_path,
                    update.selected_candidate or f"{len(candidates)} candidates",
                )
            updates.append(update)
            summary.count(update.status)

            if on_progress is not None:
                on_progress(SearchProgress(done, len(targets), reference.file_name))
    except RelinkCancelled:
        summary.enumeration_failures = cache.enumeration_failures
        logger.info("Relink search cancelled after {} of {} references", len(updates), len(targets))
        raise RelinkCancelled(
            partial=ExecutionResult(summary=summary, updates=tuple(updates))
        ) from None

    if not targets and on_progress is not None:
        on_progress(SearchProgress(0, 0))

    summary.enumeration_failures = cache.enumeration_failures
    logger.info("Search completed: {}", summary)
    return ExecutionResult(summary=summary, updates=tuple(updates))
