"""
Random-access destination file.

All reads and writes are positioned, so restore workers can share one
descriptor without racing on a file cursor.
"""

import ctypes
import ctypes.util
import errno
import logging
import os
import sys
import threading
from pathlib import Path

from ..errors import DestinationUnwritableError
from .backend import split_source

logger = logging.getLogger(__name__)

FALLOC_FL_KEEP_SIZE = 0x01
FALLOC_FL_PUNCH_HOLE = 0x02

_HAS_POSITIONED_IO = hasattr(os, 'pread') and hasattr(os, 'pwrite')


def _load_fallocate():
    if not sys.platform.startswith('linux'):
        return None
    try:
        libc = ctypes.CDLL(ctypes.util.find_library('c') or None, use_errno=True)
        fallocate = libc.fallocate
    except (OSError, AttributeError):
        return None
    fallocate.argtypes = [ctypes.c_int, ctypes.c_int, ctypes.c_longlong, ctypes.c_longlong]
    fallocate.restype = ctypes.c_int
    return fallocate


_fallocate = _load_fallocate()


class DestinationFile:
    """
    The local file being restored.

    Provides "set logical size" and "mark range as hole" so the restore
    algorithm does not depend on filesystem sparse-file support. When holes
    cannot be punched, explicit zero bytes are written instead.
    """

    def __init__(self, path: str | Path, punch_holes: bool = True, zero_scan_block: int = 1 << 20):
        """
        Args:
            path: destination file path, created if missing
            punch_holes: try to deallocate zero ranges instead of writing zeros
            zero_scan_block: read size used when scanning for non-zero bytes
        """
        self.path = Path(path)
        self.punch_holes = punch_holes and _fallocate is not None
        self.zero_scan_block = zero_scan_block
        self.fd = None
        self._lock = threading.Lock()
        self._zero_block = bytes(zero_scan_block)

    def open(self) -> 'DestinationFile':
        """Open (or create) the file for reading and writing."""
        flags = os.O_RDWR | os.O_CREAT | getattr(os, 'O_BINARY', 0)
        try:
            self.fd = os.open(self.path, flags, 0o644)
        except OSError as e:
            raise DestinationUnwritableError("open", str(self.path), e)
        return self

    def close(self) -> None:
        if self.fd is not None:
            fd, self.fd = self.fd, None
            try:
                os.close(fd)
            except OSError as e:
                raise DestinationUnwritableError("close", str(self.path), e)

    def __enter__(self) -> 'DestinationFile':
        if self.fd is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def size(self) -> int:
        """Current logical size in bytes."""
        try:
            return os.fstat(self.fd).st_size
        except OSError as e:
            raise DestinationUnwritableError("stat", str(self.path), e)

    def set_size(self, size: int) -> None:
        """
        Truncate or extend to exactly `size` bytes.

        Extension writes no data, so the new tail is a hole on filesystems
        with sparse-file support.
        """
        try:
            os.ftruncate(self.fd, size)
        except OSError as e:
            raise DestinationUnwritableError("resize", str(self.path), e)

    def read_at(self, offset: int, length: int) -> bytes:
        """Read up to `length` bytes at `offset`; short only at end of file."""
        try:
            if not _HAS_POSITIONED_IO:
                with self._lock:
                    os.lseek(self.fd, offset, os.SEEK_SET)
                    return self._read_fully(lambda n, _pos: os.read(self.fd, n), offset, length)
            return self._read_fully(lambda n, pos: os.pread(self.fd, n, pos), offset, length)
        except OSError as e:
            raise DestinationUnwritableError("read", str(self.path), e)

    def write_at(self, offset: int, data: bytes) -> None:
        """Write all of `data` at `offset`."""
        view = memoryview(data)
        try:
            if not _HAS_POSITIONED_IO:
                with self._lock:
                    os.lseek(self.fd, offset, os.SEEK_SET)
                    while view:
                        view = view[os.write(self.fd, view):]
                return
            position = offset
            while view:
                written = os.pwrite(self.fd, view, position)
                view = view[written:]
                position += written
        except OSError as e:
            raise DestinationUnwritableError("write", str(self.path), e)

    def is_zero_range(self, offset: int, length: int) -> bool:
        """
        Check whether [offset, offset + length) reads as all zeros.

        Ranges that are entirely a hole are recognized without reading.
        Otherwise the range is scanned block by block, stopping at the
        first non-zero byte. A range extending past end of file is not zero.
        """
        if offset + length > self.size():
            return False
        if self._is_hole(offset, length):
            return True

        position = offset
        end = offset + length
        while position < end:
            step = min(self.zero_scan_block, end - position)
            block = self.read_at(position, step)
            if len(block) < step:
                return False
            if block != self._zero_block[:step]:
                return False
            position += step
        return True

    def punch_hole(self, offset: int, length: int) -> None:
        """
        Make [offset, offset + length) read as zeros.

        Deallocates the range where the filesystem supports it, otherwise
        writes explicit zero bytes. The logical size is never changed.
        """
        if length <= 0:
            return
        if self.punch_holes and self._fallocate_punch(offset, length):
            return
        self.write_zeros(offset, length)

    def write_zeros(self, offset: int, length: int) -> None:
        position = offset
        end = offset + length
        while position < end:
            step = min(len(self._zero_block), end - position)
            self.write_at(position, self._zero_block[:step])
            position += step

    def flush(self) -> None:
        """Flush written data to stable storage."""
        try:
            os.fsync(self.fd)
        except OSError as e:
            raise DestinationUnwritableError("fsync", str(self.path), e)

    def _read_fully(self, read, offset: int, length: int) -> bytes:
        chunks = []
        remaining = length
        position = offset
        while remaining > 0:
            data = read(remaining, position)
            if not data:
                break
            chunks.append(data)
            remaining -= len(data)
            position += len(data)
        return b''.join(chunks)

    def _is_hole(self, offset: int, length: int) -> bool:
        """True when no data extent starts before offset + length."""
        if not hasattr(os, 'SEEK_DATA') or not _HAS_POSITIONED_IO:
            return False
        try:
            next_data = os.lseek(self.fd, offset, os.SEEK_DATA)
        except OSError as e:
            # ENXIO: no data at or after offset
            return e.errno == errno.ENXIO
        return next_data >= offset + length

    def _fallocate_punch(self, offset: int, length: int) -> bool:
        result = _fallocate(self.fd, FALLOC_FL_PUNCH_HOLE | FALLOC_FL_KEEP_SIZE, offset, length)
        if result == 0:
            return True
        err = ctypes.get_errno()
        if err in (errno.EOPNOTSUPP, errno.ENOSYS, errno.EINVAL):
            logger.warning(
                "Filesystem does not support hole punching for %s (%s); writing zeros instead",
                self.path, os.strerror(err),
            )
            self.punch_holes = False
            return False
        raise DestinationUnwritableError("punch_hole", str(self.path), OSError(err, os.strerror(err)))

    def __repr__(self) -> str:
        return f"DestinationFile({str(self.path)!r})"


def destination_path(destination: str | Path) -> Path:
    """
    Resolve a DESTINATION argument (path or file:// URI) to a local path.

    Raises DestinationUnwritableError for remote destinations.
    """
    if isinstance(destination, Path):
        return destination
    scheme, _, path = split_source(destination)
    if scheme != 'file' or not path:
        raise DestinationUnwritableError(
            "open", destination, ValueError("destination must be a local file"),
        )
    return Path(path).expanduser()
