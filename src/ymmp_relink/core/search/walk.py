"""Recursive file enumeration that survives unreadable directories."""

from collections.abc import Callable, Iterator

from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.protocols import FileSystemProtocol

FailureCallback = Callable[[str, OSError], None]


def enumerate_files_safe(
    root: str,
    fs: FileSystemProtocol,
    *,
    on_failure: FailureCallback,
    cancel: CancelToken | None = None,
) -> Iterator[str]:
    """Yield every file below root, depth-first.

    A directory whose files or subdirectories cannot be listed is reported
    through ``on_failure`` and skipped; the walk carries on with the
    directories already discovered.
    """
    stack = [root]
    while stack:
        if cancel is not None:
            cancel.raise_if_cancelled()
        directory = stack.pop()

        try:
            files = fs.list_files(directory)
        except OSError as e:
            logger.error("Listing files failed: {} ({})", directory, e)
            on_failure(directory, e)
            continue

        for path in files:
            if cancel is not None:
                cancel.raise_if_cancelled()
            yield path

        try:
            subdirs = fs.list_dirs(directory)
        except OSError as e:
            logger.error("Listing directories failed: {} ({})", directory, e)
            on_failure(directory, e)
            continue

        # Reversed so the first listed subdirectory is walked first.
        stack.extend(reversed(subdirs))
