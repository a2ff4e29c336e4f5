"""Local filesystem access."""

import errno
import os
import stat


class LocalFileSystem:
    """FileSystemProtocol backed by the operating system.

    Listings are sorted by name so candidate order does not depend on the
    directory's on-disk order. Symlinked directories are not followed.
    """

    def probe_file(self, path: str) -> bool:
        try:
            st = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            # Over-long or malformed names cannot exist; anything else is a real failure.
            if e.errno in (errno.ENAMETOOLONG, errno.EINVAL):
                return False
            raise
        except ValueError:
            # Embedded NUL byte.
            return False
        return stat.S_ISREG(st.st_mode) and os.access(path, os.R_OK)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def list_files(self, directory: str) -> list[str]:
        with os.scandir(directory) as it:
            names = sorted(entry.name for entry in it if entry.is_file())
        return [os.path.join(directory, name) for name in names]

    def list_dirs(self, directory: str) -> list[str]:
        with os.scandir(directory) as it:
            names = sorted(entry.name for entry in it if entry.is_dir(follow_symlinks=False))
        return [os.path.join(directory, name) for name in names]
