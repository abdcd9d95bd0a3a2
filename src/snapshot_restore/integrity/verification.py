"""
Integrity verification for manifests and chunks.
"""

from ..errors import ChunkCorruptError, InvariantViolationError, ManifestCorruptError
from ..invariants import create_manifest_invariants
from .hashing import MANIFEST_HASH_ALGORITHM, compute_hash


def verify_object_integrity(data: bytes, expected_hash: str) -> None:
    """
    Verify that a stored manifest object's bytes match its key.

    Raises ManifestCorruptError if mismatch detected.
    """
    actual_hash = compute_hash(data, MANIFEST_HASH_ALGORITHM)
    if actual_hash != expected_hash:
        raise ManifestCorruptError(
            expected_hash,
            f"stored bytes hash to {actual_hash}",
        )


def verify_manifest(manifest, manifest_hash: str) -> None:
    """
    Verify the layout invariants of a decoded manifest.

    Raises ManifestCorruptError naming the first violated invariant.
    """
    registry = create_manifest_invariants(manifest)
    try:
        registry.verify_first_failure()
    except InvariantViolationError as e:
        raise ManifestCorruptError(manifest_hash, f"{e.invariant}: {e.details}") from e


def verify_chunk_data(data: bytes, chunk, algorithm: str) -> None:
    """
    Verify fetched chunk bytes against the manifest entry.

    Raises ChunkCorruptError on a length or hash mismatch.
    """
    if len(data) != chunk.length:
        raise ChunkCorruptError(
            chunk.offset,
            chunk.hash,
            f"<{len(data)} bytes, expected {chunk.length}>",
        )
    actual_hash = compute_hash(data, algorithm)
    if actual_hash != chunk.hash:
        raise ChunkCorruptError(chunk.offset, chunk.hash, actual_hash)
