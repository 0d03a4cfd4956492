from __future__ import annotations

import enum
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import PurePath

logger = logging.getLogger(__name__)

S_SETUID = 0o4000
S_SETGID = 0o2000
ANY_READ = 0o0444
ANY_WRITE = 0o0222
ANY_EXEC = 0o0111


class FileKind(enum.Enum):
    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    BLOCK_DEVICE = "block device"
    CHAR_DEVICE = "char device"
    FIFO = "fifo"
    OTHER = "other"
    UNKNOWN = "unknown"


class Ordering(enum.Enum):
    LESS = -1
    EQUAL = 0
    GREATER = 1
    INCOMPARABLE = None


def _kind_of(mode: int) -> FileKind:
    if stat.S_ISREG(mode):
        return FileKind.REGULAR
    if stat.S_ISDIR(mode):
        return FileKind.DIRECTORY
    if stat.S_ISLNK(mode):
        return FileKind.SYMLINK
    if stat.S_ISBLK(mode):
        return FileKind.BLOCK_DEVICE
    if stat.S_ISCHR(mode):
        return FileKind.CHAR_DEVICE
    if stat.S_ISFIFO(mode):
        return FileKind.FIFO
    return FileKind.OTHER


@dataclass(frozen=True)
class Entry:
    """A filesystem path whose attributes are queried on demand.

    Nothing is cached: every query performs its own ``stat`` call, and a
    failed call only makes the queries that depend on it come back empty
    (``None``, ``FileKind.UNKNOWN`` or ``False``).
    """

    path: str

    def metadata(self, follow_symlinks: bool = True) -> os.stat_result | None:
        try:
            return os.stat(self.path, follow_symlinks=follow_symlinks)
        except (OSError, ValueError) as e:
            logger.debug("stat failed for %r: %s", self.path, e)
            return None

    def kind(self, follow_symlinks: bool = True) -> FileKind:
        st = self.metadata(follow_symlinks)
        if st is None:
            return FileKind.UNKNOWN
        return _kind_of(st.st_mode)

    def mode(self) -> int | None:
        st = self.metadata()
        return None if st is None else st.st_mode

    def size(self) -> int | None:
        st = self.metadata()
        return None if st is None else st.st_size

    def mtime(self) -> int | None:
        """Modification time in whole seconds since the epoch."""
        st = self.metadata()
        return None if st is None else st.st_mtime_ns // 1_000_000_000

    def _mode_has(self, bits: int) -> bool:
        mode = self.mode()
        return mode is not None and mode & bits != 0

    def is_hidden(self) -> bool:
        # PurePath drops trailing "/" and "."; "/" and "." have no name at all
        name = PurePath(self.path).name
        return name.startswith(".") and name != ".."

    def is_block(self) -> bool:
        return self.kind() is FileKind.BLOCK_DEVICE

    def is_char(self) -> bool:
        return self.kind() is FileKind.CHAR_DEVICE

    def is_dir(self) -> bool:
        return self.kind() is FileKind.DIRECTORY

    def exists(self) -> bool:
        # Anything other than a clean stat counts as missing, including
        # broken symlinks and permission errors on a parent directory.
        try:
            os.stat(self.path)
        except FileNotFoundError:
            return False
        except (OSError, ValueError) as e:
            logger.debug("existence check failed for %r: %s", self.path, e)
            return False
        return True

    def is_file(self) -> bool:
        return self.kind() is FileKind.REGULAR

    def has_setgid(self) -> bool:
        return self._mode_has(S_SETGID)

    def is_symlink(self) -> bool:
        return self.kind(follow_symlinks=False) is FileKind.SYMLINK

    def is_pipe(self) -> bool:
        return self.kind() is FileKind.FIFO

    def is_readable(self) -> bool:
        return self._mode_has(ANY_READ)

    def is_non_empty(self) -> bool:
        size = self.size()
        return size is not None and size > 0

    def has_setuid(self) -> bool:
        return self._mode_has(S_SETUID)

    def is_writable(self) -> bool:
        return self._mode_has(ANY_WRITE)

    def is_executable(self) -> bool:
        return self._mode_has(ANY_EXEC)

    def display(self) -> str:
        """The path as printable text, with undecodable bytes replaced."""
        return os.fsencode(self.path).decode("utf-8", errors="replace")


def compare_mtime(entry: Entry, other: Entry) -> Ordering:
    """Order two entries by modification time.

    Returns ``Ordering.INCOMPARABLE`` when either side cannot be stat'ed.
    """
    mine = entry.mtime()
    theirs = other.mtime()
    if mine is None or theirs is None:
        return Ordering.INCOMPARABLE
    if mine < theirs:
        return Ordering.LESS
    if mine > theirs:
        return Ordering.GREATER
    return Ordering.EQUAL
