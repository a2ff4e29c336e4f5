"""Write accepted relinks back into a project document."""

import difflib
import json
import os
import shutil
import tempfile
import threading
from pathlib import Path

from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.document.reader import RawDocument
from ymmp_relink.errors import BackupFailed, PatchFailed, SaveInProgress, WriteFailed
from ymmp_relink.models.reference import DocumentContext, Reference, RelinkStatus, SaveResult

# Documents with a save running in this process, by resolved path.
_saves_in_flight: set[str] = set()
_saves_lock = threading.Lock()


def accepted_references(context: DocumentContext) -> list[Reference]:
    """References that are UPDATED and carry a non-blank replacement path."""
    return [
        r
        for r in context.references
        if r.status is RelinkStatus.UPDATED
        and r.selected_candidate is not None
        and r.selected_candidate.strip()
    ]


def encode_path_literal(value: str, *, ascii_only: bool) -> str:
    """Serialize a path as a JSON string literal."""
    return json.dumps(value, ensure_ascii=ascii_only)


def patch_text(
    context: DocumentContext,
    references: list[Reference],
    *,
    cancel: CancelToken | None = None,
) -> str:
    """Return the original text with each reference's path literal replaced.

    Every reference is located by its scanned span, so two references with
    the same original path are patched independently. Bytes outside the
    spans are kept as they are.

    Raises:
        PatchFailed: a reference has no span, or its span no longer holds
            the original path.
    """
    text = context.original_text
    # Keep pure-ASCII documents pure ASCII.
    ascii_only = text.isascii()
    pieces: list[str] = []
    pos = 0
    for reference in sorted(references, key=lambda r: r.span or (-1, -1)):
        if cancel is not None:
            cancel.raise_if_cancelled()
        if reference.span is None:
            msg = f"Reference #{reference.index} has no location in the document"
            raise PatchFailed(msg)
        start, end = reference.span
        token = text[start:end]
        try:
            current = json.loads(token)
        except json.JSONDecodeError as e:
            msg = f"Reference #{reference.index}: {token!r} is not a string literal"
            raise PatchFailed(msg) from e
        if current != reference.original_path:
            msg = (
                f"Reference #{reference.index}: expected {reference.original_path!r} "
                f"at offset {start}, found {current!r}"
            )
            raise PatchFailed(msg)
        new_path = reference.selected_candidate or ""
        pieces.append(text[pos:start])
        pieces.append(encode_path_literal(new_path, ascii_only=ascii_only))
        pos = end
    pieces.append(text[pos:])
    return "".join(pieces)


def diff_preview(context: DocumentContext) -> str:
    """Unified diff between the original document and the patched one."""
    new_text = patch_text(context, accepted_references(context))
    name = context.source_path.name
    return "".join(
        difflib.unified_diff(
            context.original_text.splitlines(keepends=True),
            new_text.splitlines(keepends=True),
            fromfile=f"a/{name}",
            tofile=f"b/{name}",
        )
    )


def _encode(context: DocumentContext, new_text: str) -> bytes:
    try:
        return RawDocument(text=context.original_text, has_bom=context.has_bom).encode(new_text)
    except UnicodeEncodeError as e:
        msg = f"Patched document cannot be encoded as UTF-8: {e}"
        raise PatchFailed(msg) from e


def _atomic_write_bytes(target: Path, data: bytes) -> None:
    fd, tmp_path = tempfile.mkstemp(prefix=target.name + ".", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        shutil.copymode(target, tmp_path)
        os.replace(tmp_path, target)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


class PatchWriter:
    """Persist relinks with minimal changes to the document.

    - Nothing is written when no reference is accepted.
    - The original is copied to ``<document>.bak`` before anything else;
      if the copy fails, the document is left alone.
    - The new text is written to a temporary file and renamed over the
      document, so a failed write leaves the original intact.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def save(self, context: DocumentContext, cancel: CancelToken | None = None) -> SaveResult:
        """Apply accepted references to the document on disk.

        Raises:
            SaveInProgress: another save of the same document is running.
            BackupFailed: the backup could not be created.
            PatchFailed, WriteFailed: the document could not be rewritten.
            RelinkCancelled: cancel was set before the final write.
        """
        accepted = accepted_references(context)
        logger.info("Relink save start: {} ({} updates)", context.source_path, len(accepted))
        if not accepted:
            logger.info("Relink save skipped: {} has no updates", context.source_path)
            return SaveResult()

        key = str(context.source_path.resolve())
        with _saves_lock:
            if key in _saves_in_flight:
                msg = f"A save of {context.source_path} is already running"
                raise SaveInProgress(msg)
            _saves_in_flight.add(key)
        try:
            return self._save(context, accepted, cancel)
        finally:
            with _saves_lock:
                _saves_in_flight.discard(key)

    def _save(
        self,
        context: DocumentContext,
        accepted: list[Reference],
        cancel: CancelToken | None,
    ) -> SaveResult:
        if cancel is not None:
            cancel.raise_if_cancelled()
        source = context.source_path
        backup = context.backup_path

        if self.dry_run:
            new_text = patch_text(context, accepted, cancel=cancel)
            _encode(context, new_text)
            logger.info("dry-run: would back up {} to {}", source, backup)
            logger.info(
                "dry-run: would update {} references ({} characters changed in size)",
                len(accepted),
                len(new_text) - len(context.original_text),
            )
            return SaveResult(updated_count=len(accepted), dry_run=True)

        try:
            shutil.copyfile(source, backup)
        except OSError as e:
            msg = f"Cannot create backup {backup}: {e}"
            raise BackupFailed(msg) from e
        logger.debug("Backup written: {}", backup)

        new_text = patch_text(context, accepted, cancel=cancel)
        data = _encode(context, new_text)

        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            _atomic_write_bytes(source, data)
        except OSError as e:
            msg = f"Cannot write {source}: {e}"
            raise WriteFailed(msg) from e

        logger.info("Save completed: updated={}, backup={}", len(accepted), backup)
        return SaveResult(updated_count=len(accepted), backup_path=backup)
