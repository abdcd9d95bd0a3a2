"""
Storage backend interface and URI resolution.

The restore engine only needs to list, test, read and write keys; every
concrete backend exposes exactly that.
"""

import abc
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

from ..errors import UnsupportedSourceError


class Backend(abc.ABC):
    """
    Uniform capability over a storage location.

    Keys are '/'-separated paths relative to the backend root.
    Implementations must be safe for concurrent use from several threads
    and report retryable failures as TransientBackendError and missing keys
    as ObjectNotFoundError.
    """

    scheme = ''

    @abc.abstractmethod
    def list(self, prefix: str) -> List[str]:
        """
        List entry names directly under a prefix.

        Returns names relative to the prefix (no nested paths). A prefix
        that does not exist yields an empty list.
        """

    @abc.abstractmethod
    def exists(self, key: str) -> bool:
        """Check if a key exists."""

    @abc.abstractmethod
    def read_range(self, key: str, offset: int, length: int) -> bytes:
        """Read up to `length` bytes of a key starting at `offset`."""

    @abc.abstractmethod
    def read(self, key: str) -> bytes:
        """Read a whole key."""

    @abc.abstractmethod
    def write_range(self, key: str, offset: int, data: bytes) -> None:
        """Write `data` into a key at `offset`, creating the key if needed."""

    def write(self, key: str, data: bytes) -> None:
        """Write a whole key."""
        self.write_range(key, 0, data)

    def describe(self, key: str = '') -> str:
        """Human-readable location of a key, for messages."""
        return key


def split_source(source: str) -> Tuple[str, str, str]:
    """
    Split a source into (scheme, netloc, path).

    Bare paths are treated as 'file' sources.
    """
    parsed = urlparse(source)
    # one-letter schemes are Windows drive letters, not URI schemes
    if not parsed.scheme or len(parsed.scheme) == 1:
        return 'file', '', source
    if parsed.scheme == 'file':
        return 'file', '', unquote(parsed.netloc + parsed.path)
    return parsed.scheme, parsed.netloc, parsed.path.lstrip('/')


def resolve_source(source: str, config=None) -> Tuple[Backend, str]:
    """
    Resolve a SOURCE argument into a backend and a backup-set path.

    Args:
        source: local path, file:// URI, s3://bucket/prefix or gs://bucket/prefix
        config: optional RestoreConfig for object-store settings

    Returns:
        tuple: (backend, backup_set_path)

    Raises UnsupportedSourceError for unknown schemes.
    """
    scheme, netloc, path = split_source(source)

    if scheme == 'file':
        from .local import LocalBackend
        if not path:
            raise UnsupportedSourceError(source)
        return LocalBackend(path), ''

    if scheme in ('s3', 'gs'):
        from .object_store import ObjectStoreBackend
        if not netloc:
            raise UnsupportedSourceError(source)
        endpoint: Optional[str] = getattr(config, 's3_endpoint_url', None)
        region: Optional[str] = getattr(config, 's3_region', None)
        backend = ObjectStoreBackend(
            bucket=netloc,
            scheme=scheme,
            endpoint_url=endpoint,
            region=region,
        )
        return backend, path.strip('/')

    raise UnsupportedSourceError(source)
