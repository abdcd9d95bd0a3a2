"""
Key layout of a backup set inside a backend.

Implements content-addressed storage with directory sharding.
"""

import posixpath

from ..integrity.hashing import get_hash_prefix


class BackupSetLayout:
    """
    Maps snapshots, manifests and chunks of one backup set to backend keys.

    Layout:
        <backup_set>/
            snapshots/
                <unix-timestamp>     # text: manifest hash
            manifests/
                <prefix>/
                    <hash>           # canonical JSON manifest
            chunks/
                <prefix>/
                    <hash>           # chunk blob
    """

    SNAPSHOTS = 'snapshots'
    MANIFESTS = 'manifests'
    CHUNKS = 'chunks'

    def __init__(self, backup_set: str = ''):
        """Initialize layout for the backup set at the given path."""
        self.backup_set = backup_set.strip('/')

    def _join(self, *parts: str) -> str:
        if self.backup_set:
            return posixpath.join(self.backup_set, *parts)
        return posixpath.join(*parts)

    @property
    def snapshots_prefix(self) -> str:
        return self._join(self.SNAPSHOTS)

    def snapshot_key(self, timestamp: int) -> str:
        return self._join(self.SNAPSHOTS, str(int(timestamp)))

    def manifest_key(self, manifest_hash: str) -> str:
        """Uses 2-character prefix for directory sharding."""
        return self._join(self.MANIFESTS, get_hash_prefix(manifest_hash, 2), manifest_hash)

    def chunk_key(self, chunk_hash: str) -> str:
        """Uses 2-character prefix for directory sharding."""
        return self._join(self.CHUNKS, get_hash_prefix(chunk_hash, 2), chunk_hash)

    def __repr__(self) -> str:
        return f"BackupSetLayout({self.backup_set!r})"
