"""
Local filesystem backend.
"""

import errno
import os
import tempfile
from pathlib import Path
from typing import List

from ..errors import BackendError, ObjectNotFoundError, TransientBackendError
from .backend import Backend

# errors a retry can plausibly fix (network filesystems, busy devices)
TRANSIENT_ERRNOS = {
    errno.EAGAIN,
    errno.EINTR,
    errno.EIO,
    errno.EBUSY,
    errno.ETIMEDOUT,
    errno.ESTALE,
}


class LocalBackend(Backend):
    """
    Backend over a directory tree.

    Keys map to files below the root directory.
    """

    scheme = 'file'

    def __init__(self, root: str | Path):
        """Initialize backend rooted at the given directory."""
        self.root = Path(root).expanduser().resolve()

    def path_for(self, key: str) -> Path:
        """
        Get filesystem path for a key.

        Rejects keys that would escape the root.
        """
        parts = [p for p in key.split('/') if p]
        if any(p in ('.', '..') for p in parts):
            raise BackendError(f"Invalid key: {key!r}")
        return self.root.joinpath(*parts)

    def list(self, prefix: str) -> List[str]:
        directory = self.path_for(prefix)
        try:
            return sorted(entry.name for entry in directory.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return []
        except OSError as e:
            raise self._wrap_error("list", prefix, e)

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read_range(self, key: str, offset: int, length: int) -> bytes:
        path = self.path_for(key)
        try:
            with path.open('rb') as f:
                f.seek(offset)
                return f.read(length)
        except OSError as e:
            raise self._wrap_error("read", key, e)

    def read(self, key: str) -> bytes:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise self._wrap_error("read", key, e)

    def write_range(self, key: str, offset: int, data: bytes) -> None:
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o644)
            try:
                os.lseek(fd, offset, os.SEEK_SET)
                view = memoryview(data)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            finally:
                os.close(fd)
        except OSError as e:
            raise self._wrap_error("write", key, e)

    def write(self, key: str, data: bytes) -> None:
        """Replace a whole key atomically."""
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(path, data)
        except OSError as e:
            raise self._wrap_error("write", key, e)

    def describe(self, key: str = '') -> str:
        return str(self.path_for(key)) if key else str(self.root)

    def _write_atomic(self, path: Path, data: bytes) -> None:
        """
        Write a file atomically.

        Uses temp file + rename for atomicity.
        """
        fd, temp_path = tempfile.mkstemp(dir=str(path.parent), prefix='.tmp_')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def _wrap_error(self, operation: str, key: str, error: OSError) -> Exception:
        if isinstance(error, FileNotFoundError):
            return ObjectNotFoundError(key)
        if error.errno in TRANSIENT_ERRNOS:
            return TransientBackendError(operation, key, error)
        return BackendError(f"Storage error during {operation}: {self.describe(key)}\nCause: {error}")

    def __repr__(self) -> str:
        return f"LocalBackend({str(self.root)!r})"
