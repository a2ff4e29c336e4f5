"""Find and relink missing media files in YMM4 project files."""

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.scanner import scan_document
from ymmp_relink.core.search.engine import search_candidates
from ymmp_relink.filesystem import LocalFileSystem
from ymmp_relink.models.reference import Reference, RelinkStatus, RelinkSummary
from ymmp_relink.protocols import FileSystemProtocol
from ymmp_relink.session import RelinkSession
from ymmp_relink.writer import PatchWriter

__all__ = [
    "CancelToken",
    "FileSystemProtocol",
    "LocalFileSystem",
    "PatchWriter",
    "Reference",
    "RelinkSession",
    "RelinkStatus",
    "RelinkSummary",
    "scan_document",
    "search_candidates",
]
