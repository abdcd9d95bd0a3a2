"""
Content hashing for chunks and manifests.

Chunk hashes use the algorithm declared by the manifest (SHA-256 or
BLAKE3). Manifest objects are always keyed by SHA-256.
"""

import hashlib
from functools import lru_cache

import blake3

from .canonical import canonical_json

SUPPORTED_ALGORITHMS = ('sha256', 'blake3')
MANIFEST_HASH_ALGORITHM = 'sha256'

# both algorithms produce 256-bit digests
DIGEST_HEX_LENGTH = 64

_HASH_BLOCK = 1 << 20


def new_hasher(algorithm: str):
    """
    Create an incremental hasher for the given algorithm.

    Both hashlib and blake3 objects expose update() and hexdigest().
    """
    if algorithm == 'sha256':
        return hashlib.sha256()
    if algorithm == 'blake3':
        return blake3.blake3()
    raise ValueError(f"Unsupported hash algorithm: {algorithm}")


def compute_hash(data: bytes, algorithm: str = 'sha256') -> str:
    """
    Compute hash of raw bytes.

    Returns hex-encoded hash string.
    """
    hasher = new_hasher(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def compute_object_hash(obj: dict) -> str:
    """
    Compute the storage key of a structured object.

    Hashes the canonical JSON encoding, so dict ordering does not matter.
    """
    return compute_hash(canonical_json(obj), MANIFEST_HASH_ALGORITHM)


@lru_cache(maxsize=32)
def zero_chunk_hash(length: int, algorithm: str) -> str:
    """
    Hash of `length` zero bytes.

    Fed in blocks so large chunk sizes never allocate the whole buffer.
    """
    hasher = new_hasher(algorithm)
    block = memoryview(bytes(min(length, _HASH_BLOCK)))
    remaining = length
    while remaining > 0:
        step = min(remaining, len(block))
        hasher.update(block[:step])
        remaining -= step
    return hasher.hexdigest()


def get_hash_prefix(hash_str: str, prefix_length: int = 2) -> str:
    """
    Get prefix of hash for directory sharding.

    Default is 2 characters, creating 256 subdirectories.
    """
    if len(hash_str) < prefix_length:
        raise ValueError(f"Hash too short for prefix length {prefix_length}")
    return hash_str[:prefix_length]
