"""
Shared fixtures: building backup sets and observing backend traffic.
"""

import threading
from typing import Callable, List, Optional

import pytest

from snapshot_restore import Restorer, RestoreConfig
from snapshot_restore.integrity.canonical import canonical_json
from snapshot_restore.integrity.hashing import compute_hash, compute_object_hash, zero_chunk_hash
from snapshot_restore.model.manifest import ChunkRef, Manifest
from snapshot_restore.storage.backend import Backend
from snapshot_restore.storage.codec import encode_chunk
from snapshot_restore.storage.layout import BackupSetLayout
from snapshot_restore.storage.local import LocalBackend


class BackupSetBuilder:
    """
    Writes snapshots into a backend the way the backup path lays them out.
    """

    def __init__(
        self,
        backend: Backend,
        backup_set: str = '',
        chunk_size: int = 16,
        hash_algorithm: str = 'sha256',
        compression: str = 'none',
    ):
        self.backend = backend
        self.layout = BackupSetLayout(backup_set)
        self.chunk_size = chunk_size
        self.hash_algorithm = hash_algorithm
        self.compression = compression

    def build_manifest(self, content: bytes) -> Manifest:
        chunks = []
        for offset in range(0, len(content), self.chunk_size):
            data = content[offset:offset + self.chunk_size]
            if data.count(0) == len(data):
                chunk_hash = zero_chunk_hash(len(data), self.hash_algorithm)
                chunks.append(ChunkRef(offset, len(data), chunk_hash, True))
            else:
                chunk_hash = compute_hash(data, self.hash_algorithm)
                chunks.append(ChunkRef(offset, len(data), chunk_hash, False))
        return Manifest(
            file_size=len(content),
            chunk_size=self.chunk_size,
            chunks=chunks,
            hash_algorithm=self.hash_algorithm,
            compression=self.compression,
        )

    def add_snapshot(self, timestamp: int, content: bytes) -> Manifest:
        """Store chunks, manifest and snapshot entry; returns the manifest."""
        manifest = self.build_manifest(content)
        for chunk in manifest.chunks:
            if chunk.is_zero:
                continue
            key = self.layout.chunk_key(chunk.hash)
            if not self.backend.exists(key):
                data = content[chunk.offset:chunk.end]
                self.backend.write(key, encode_chunk(data, self.compression))
        self.add_raw_manifest(timestamp, manifest.to_dict())
        return manifest

    def add_raw_manifest(self, timestamp: int, manifest_obj: dict) -> str:
        """Store an arbitrary manifest object under a snapshot entry."""
        manifest_hash = compute_object_hash(manifest_obj)
        self.backend.write(self.layout.manifest_key(manifest_hash), canonical_json(manifest_obj))
        self.backend.write(self.layout.snapshot_key(timestamp), manifest_hash.encode('ascii'))
        return manifest_hash


class CountingBackend(Backend):
    """
    Delegating backend that records every key read and can inject faults.
    """

    def __init__(self, inner: Backend):
        self.inner = inner
        self.scheme = inner.scheme
        self.reads: List[str] = []
        self.on_read: Optional[Callable[[str], None]] = None
        self._lock = threading.Lock()

    @property
    def chunk_reads(self) -> List[str]:
        return [key for key in self.reads if '/chunks/' in '/' + key]

    def list(self, prefix):
        return self.inner.list(prefix)

    def exists(self, key):
        return self.inner.exists(key)

    def read_range(self, key, offset, length):
        self._record(key)
        return self.inner.read_range(key, offset, length)

    def read(self, key):
        self._record(key)
        return self.inner.read(key)

    def write_range(self, key, offset, data):
        self.inner.write_range(key, offset, data)

    def write(self, key, data):
        self.inner.write(key, data)

    def describe(self, key=''):
        return self.inner.describe(key)

    def _record(self, key):
        with self._lock:
            self.reads.append(key)
        if self.on_read is not None:
            self.on_read(key)


def distinct_bytes(length: int, seed: int = 1) -> bytes:
    """Non-zero, non-repeating-per-chunk test content."""
    return bytes(((i * 7 + seed) % 251) + 1 for i in range(length))


@pytest.fixture
def backup_dir(tmp_path):
    path = tmp_path / 'backups'
    path.mkdir()
    return path


@pytest.fixture
def backend(backup_dir):
    return CountingBackend(LocalBackend(backup_dir))


@pytest.fixture
def builder(backend):
    return BackupSetBuilder(backend)


@pytest.fixture
def config():
    return RestoreConfig(concurrency=4, max_retries=2, retry_base_delay=0.0, zero_scan_block=8)


@pytest.fixture
def restorer(backend, config):
    """Restorer bound to the counting backend regardless of SOURCE."""
    return Restorer(config, resolve=lambda source, cfg: (backend, ''), sleep=lambda s: None)


@pytest.fixture
def destination(tmp_path):
    return tmp_path / 'restored.img'
