"""Configuration constants for ymmp-relink."""

import os
from pathlib import Path

# Key whose string value is a media file path.
REFERENCE_KEY: str = "FilePath"

# Key whose value holds timeline items. Only paths below it are references;
# the project file also stores its own location under REFERENCE_KEY.
COLLECTION_KEY: str = "Items"

# Keys that carry an item type label. First non-blank one wins.
TYPE_HINT_KEYS: tuple[str, ...] = ("TypeHint", "Type", "$type", "ItemType")

# Backup written next to the document before it is patched.
BACKUP_SUFFIX: str = ".bak"

# Minimum seconds between forwarded progress events (terminal event always passes).
PROGRESS_INTERVAL_SECONDS: float = 0.2

# Persistent relink log. Only used when requested (env var or --log-file).
LOG_FILE_ENV: str = "YMMP_RELINK_LOG_FILE"


def resolve_log_file(explicit: Path | None = None) -> Path | None:
    """Return the log file to write, or None when file logging is off.

    An explicit path wins, then the YMMP_RELINK_LOG_FILE environment variable.
    """
    if explicit is not None:
        return explicit.expanduser()
    from_env = os.environ.get(LOG_FILE_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return None
