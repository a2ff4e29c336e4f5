"""Per-search cache of filename lookups."""

import os

from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.search.walk import enumerate_files_safe
from ymmp_relink.protocols import FileSystemProtocol


class SearchCache:
    """Map a file name (case-insensitive) to the paths found under the roots.

    Names are compared with a per-character lower-case mapping only, so
    "straße.png" and "strasse.png" stay distinct.

    Built lazily: the first lookup of a name walks every root, later lookups
    of the same name return the stored tuple unchanged. One cache belongs to
    one search invocation.
    """

    def __init__(
        self,
        roots: list[str],
        fs: FileSystemProtocol,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        self.roots = roots
        self._fs = fs
        self._cancel = cancel
        self._entries: dict[str, tuple[str, ...]] = {}
        self.failed_directories: set[str] = set()
        self.walks = 0

    def __contains__(self, file_name: str) -> bool:
        return file_name.lower() in self._entries

    @property
    def enumeration_failures(self) -> int:
        """Directories that could not be listed. Each counts once per search."""
        return len(self.failed_directories)

    def _record_failure(self, directory: str, error: OSError) -> None:
        self.failed_directories.add(directory)

    def lookup(self, file_name: str) -> tuple[str, ...]:
        """Return all paths whose base name equals file_name, ignoring case."""
        key = file_name.lower()
        cached = self._entries.get(key)
        if cached is not None:
            logger.debug("Cache hit: {} ({} candidates)", file_name, len(cached))
            return cached

        found: list[str] = []
        if key:
            for root in self.roots:
                if self._cancel is not None:
                    self._cancel.raise_if_cancelled()
                if not self._fs.is_dir(root):
                    logger.debug("Search root is not a directory, skipping: {}", root)
                    continue
                self.walks += 1
                for path in enumerate_files_safe(
                    root, self._fs, on_failure=self._record_failure, cancel=self._cancel
                ):
                    if os.path.basename(path).lower() == key:
                        found.append(path)

        # Only complete walks reach this point, so a cancelled lookup caches nothing.
        result = tuple(found)
        self._entries[key] = result
        return result
