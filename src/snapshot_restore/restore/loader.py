"""
Manifest loading and validation.
"""

import logging

from ..errors import ManifestCorruptError, ObjectNotFoundError
from ..integrity.canonical import decode_json
from ..integrity.verification import verify_manifest, verify_object_integrity
from ..model.manifest import Manifest
from ..model.snapshot import Snapshot
from ..storage.backend import Backend
from ..storage.layout import BackupSetLayout

logger = logging.getLogger(__name__)


def load_manifest(backend: Backend, snapshot: Snapshot) -> Manifest:
    """
    Read, verify and decode the manifest of a snapshot.

    Args:
        backend: backend holding the backup set
        snapshot: selected snapshot

    Raises ManifestCorruptError if the stored bytes do not hash to the
    snapshot's manifest hash, cannot be decoded, or break the layout
    invariants. A missing manifest object is also reported as corrupt,
    since the snapshot entry points at it.
    """
    layout = BackupSetLayout(snapshot.backup_set)
    key = layout.manifest_key(snapshot.manifest_hash)
    try:
        data = backend.read(key)
    except ObjectNotFoundError:
        raise ManifestCorruptError(
            snapshot.manifest_hash,
            f"manifest object missing for snapshot {snapshot.timestamp}",
        )

    verify_object_integrity(data, snapshot.manifest_hash)

    try:
        manifest = Manifest.from_dict(decode_json(data))
    except ValueError as e:
        raise ManifestCorruptError(snapshot.manifest_hash, str(e))

    verify_manifest(manifest, snapshot.manifest_hash)

    logger.info(
        "Loaded manifest %s: %d bytes in %d chunks (%d zero), chunk size %d, %s/%s",
        snapshot.manifest_hash[:12], manifest.file_size, manifest.chunk_count(),
        manifest.zero_chunk_count(), manifest.chunk_size,
        manifest.hash_algorithm, manifest.compression,
    )
    return manifest
