"""
Snapshot enumeration and point-in-time selection.
"""

import bisect
import logging
from typing import List

from ..errors import ManifestCorruptError, SnapshotNotFoundError
from ..model.snapshot import Snapshot
from ..storage.backend import Backend
from ..storage.layout import BackupSetLayout

logger = logging.getLogger(__name__)


class SnapshotIndex:
    """
    Read-only view of the snapshots in one backup set.

    Snapshot entries are named by their Unix timestamp; entries with any
    other name are ignored.
    """

    def __init__(self, backend: Backend, backup_set: str = ''):
        self.backend = backend
        self.layout = BackupSetLayout(backup_set)

    def list_timestamps(self) -> List[int]:
        """All snapshot timestamps, ascending."""
        timestamps = []
        for name in self.backend.list(self.layout.snapshots_prefix):
            if name.isascii() and name.isdigit():
                timestamps.append(int(name))
            else:
                logger.debug("Ignoring non-snapshot entry %r", name)
        return sorted(timestamps)

    def list_snapshots(self) -> List[Snapshot]:
        """All snapshots, ascending by timestamp. Reads every entry."""
        return [self.load_snapshot(ts) for ts in self.list_timestamps()]

    def load_snapshot(self, timestamp: int) -> Snapshot:
        """
        Read the snapshot entry for a timestamp.

        Raises ManifestCorruptError if the entry does not name a manifest.
        """
        key = self.layout.snapshot_key(timestamp)
        raw = self.backend.read(key)
        try:
            manifest_hash = raw.decode('ascii').strip().lower()
        except UnicodeDecodeError:
            manifest_hash = ''
        if len(manifest_hash) < 2 or not all(c in '0123456789abcdef' for c in manifest_hash):
            raise ManifestCorruptError(
                manifest_hash or '<empty>',
                f"snapshot entry {key} does not contain a manifest hash",
            )
        return Snapshot(timestamp, self.layout.backup_set, manifest_hash)

    def select_snapshot(self, target_time: int) -> Snapshot:
        """
        Pick the snapshot with the largest timestamp <= target_time.

        Never picks a later snapshot. Raises SnapshotNotFoundError if
        none qualifies.
        """
        timestamps = self.list_timestamps()
        position = bisect.bisect_right(timestamps, target_time)
        if position == 0:
            raise SnapshotNotFoundError(self.layout.backup_set, target_time)

        snapshot = self.load_snapshot(timestamps[position - 1])
        logger.info(
            "Selected snapshot %d (%s) for target time %d",
            snapshot.timestamp, snapshot.created_at.isoformat(), target_time,
        )
        return snapshot


def select_snapshot(backend: Backend, backup_set_path: str, target_time: int) -> Snapshot:
    """Select the newest snapshot at or before target_time."""
    return SnapshotIndex(backend, backup_set_path).select_snapshot(target_time)
