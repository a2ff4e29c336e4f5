"""Protocols for dependency injection in the relink resolver."""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ymmp_relink.models.reference import SearchProgress

ProgressCallback = Callable[[SearchProgress], None]


@runtime_checkable
class FileSystemProtocol(Protocol):
    """Filesystem access used by the scanner and the candidate search."""

    def probe_file(self, path: str) -> bool:
        """Return True for a readable regular file, False when absent.

        Raises OSError when the probe itself fails.
        """
        ...

    def is_dir(self, path: str) -> bool:
        """Return True if path is an existing directory."""
        ...

    def list_files(self, directory: str) -> list[str]:
        """Return full paths of the regular files directly inside directory."""
        ...

    def list_dirs(self, directory: str) -> list[str]:
        """Return full paths of the subdirectories directly inside directory."""
        ...
