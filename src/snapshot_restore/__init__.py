"""
Snapshot Restore - point-in-time restore of large, sparse files from
chunked, content-addressed backups.

This package provides:
- Snapshot selection by timestamp
- Manifest decoding and layout verification
- Chunk diffing against the existing destination
- Concurrent fetch-and-write with hole punching for zero regions
- Local filesystem and S3-compatible object storage backends

Main entry point:
    Restorer - restores a destination file from a backup set

Example usage:
    from snapshot_restore import Restorer, RestoreConfig

    restorer = Restorer(RestoreConfig(concurrency=8))
    report = restorer.restore_from_backup(
        's3://mybackups/node-state',
        '/var/lib/node/state.bin',
        1700000000,
    )
    print(report.fetched, report.skipped, report.zero_filled)
"""

from .config import RestoreConfig
from .engine import ChunkOutcome, RestoreJob, RestoreReport, Restorer, restore_from_backup
from .errors import (
    RestoreError,
    InvalidTimestampError,
    SnapshotNotFoundError,
    CorruptError,
    ManifestCorruptError,
    ChunkCorruptError,
    InvariantViolationError,
    BackendError,
    ObjectNotFoundError,
    TransientBackendError,
    BackendUnavailableError,
    UnsupportedSourceError,
    DestinationUnwritableError,
    RestoreCancelledError,
)
from .model.manifest import ChunkRef, Manifest
from .model.snapshot import Snapshot, parse_timestamp
from .restore.differ import ChunkDiffer, needs_fetch
from .restore.index import SnapshotIndex, select_snapshot
from .restore.loader import load_manifest
from .storage.backend import Backend, resolve_source
from .storage.destination import DestinationFile

__version__ = '0.1.0'

__all__ = [
    # Main engine
    'Restorer',
    'RestoreConfig',
    'RestoreReport',
    'RestoreJob',
    'ChunkOutcome',
    'restore_from_backup',

    # Components
    'SnapshotIndex',
    'select_snapshot',
    'load_manifest',
    'ChunkDiffer',
    'needs_fetch',
    'Backend',
    'resolve_source',
    'DestinationFile',
    'parse_timestamp',

    # Errors
    'RestoreError',
    'InvalidTimestampError',
    'SnapshotNotFoundError',
    'CorruptError',
    'ManifestCorruptError',
    'ChunkCorruptError',
    'InvariantViolationError',
    'BackendError',
    'ObjectNotFoundError',
    'TransientBackendError',
    'BackendUnavailableError',
    'UnsupportedSourceError',
    'DestinationUnwritableError',
    'RestoreCancelledError',

    # Models
    'ChunkRef',
    'Manifest',
    'Snapshot',
]
