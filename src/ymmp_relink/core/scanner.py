"""Scan a project document for file references and probe them on disk."""

from dataclasses import replace
from pathlib import Path

from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.document.reader import iter_string_members, parse_tree, read_document
from ymmp_relink.core.document.walker import DEFAULT_RULES, ExtractionRules, collect_path_leaves
from ymmp_relink.errors import ParseError, RelinkCancelled
from ymmp_relink.filesystem import LocalFileSystem
from ymmp_relink.models.reference import DocumentContext, Reference, RelinkStatus, RelinkSummary
from ymmp_relink.protocols import FileSystemProtocol


def _locate_spans(text: str, rules: ExtractionRules) -> list[tuple[str, int, int]]:
    return [
        (m.value, m.start, m.end)
        for m in iter_string_members(text)
        if m.key == rules.reference_key
    ]


def probe_reference(reference: Reference, fs: FileSystemProtocol) -> Reference:
    """Return the reference classified as EXISTING, MISSING or FAILED."""
    try:
        exists = fs.probe_file(reference.original_path)
    except OSError as e:
        logger.exception("Existence probe failed: {}", reference.original_path)
        return replace(reference, status=RelinkStatus.FAILED, message=str(e))
    if exists:
        return replace(reference, status=RelinkStatus.EXISTING, message="existing path")
    return replace(reference, status=RelinkStatus.MISSING, message="broken link")


def scan_document(
    path: str | Path,
    *,
    fs: FileSystemProtocol | None = None,
    rules: ExtractionRules = DEFAULT_RULES,
    cancel: CancelToken | None = None,
) -> tuple[DocumentContext, RelinkSummary]:
    """Read a document, extract its file references and classify each one.

    Args:
        path: Project document to scan.
        fs: Filesystem used for existence probes.
        rules: Keys that define references.
        cancel: Checked before each probe.

    Returns:
        Tuple of (DocumentContext, RelinkSummary).

    Raises:
        DocumentNotFound, IoFailure, ParseError: the document cannot be used.
        RelinkCancelled: cancel was set during probing.
    """
    path = Path(path)
    fs = fs or LocalFileSystem()
    logger.info("Relink scan start: {}", path)

    raw = read_document(path)
    tree = parse_tree(raw.text)
    leaves = collect_path_leaves(tree, rules)
    spans = _locate_spans(raw.text, rules)
    if len(spans) != len(leaves):
        msg = (
            f"Found {len(spans)} {rules.reference_key!r} tokens in the text "
            f"but {len(leaves)} in the parsed tree"
        )
        raise ParseError(msg)

    summary = RelinkSummary()
    references: list[Reference] = []
    try:
        for leaf in leaves:
            if not leaf.is_reference:
                continue
            value, start, end = spans[leaf.ordinal]
            if value != leaf.path:
                msg = f"Token #{leaf.ordinal} decodes to {value!r}, expected {leaf.path!r}"
                raise ParseError(msg)
            if cancel is not None:
                cancel.raise_if_cancelled()
            reference = Reference(
                index=len(references),
                original_path=leaf.path,
                type_hint=leaf.type_hint,
                span=(start, end),
            )
            reference = probe_reference(reference, fs)
            summary.count(reference.status)
            references.append(reference)
    except RelinkCancelled:
        logger.info("Relink scan cancelled: {}", path)
        raise
    summary.scanned = len(references)

    logger.info("Scan completed: {}", summary)
    context = DocumentContext(
        source_path=path,
        original_text=raw.text,
        references=tuple(references),
        has_bom=raw.has_bom,
    )
    return context, summary
