"""
Manifest object model.

A manifest describes one snapshot of a file as an ordered list of
fixed-size, content-addressed chunks.
"""

from typing import List, NamedTuple, Optional

from ..integrity.hashing import compute_object_hash


class ChunkRef(NamedTuple):
    """One chunk of the snapshot file: the unit of comparison and transfer."""

    offset: int
    length: int
    hash: str
    is_zero: bool = False

    @property
    def end(self) -> int:
        return self.offset + self.length

    def to_dict(self) -> dict:
        return {
            'offset': self.offset,
            'length': self.length,
            'hash': self.hash,
            'zero': self.is_zero,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ChunkRef':
        """
        Reconstruct a chunk descriptor from its stored form.

        Raises ValueError if fields are missing or have the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("Chunk entry must be an object")

        try:
            offset = data['offset']
            length = data['length']
            chunk_hash = data['hash']
        except KeyError as e:
            raise ValueError(f"Chunk entry missing field {e}")

        is_zero = data.get('zero', False)

        if not _is_int(offset) or not _is_int(length):
            raise ValueError("Chunk offset and length must be integers")
        if not isinstance(chunk_hash, str) or not chunk_hash:
            raise ValueError("Chunk hash must be a non-empty string")
        if not isinstance(is_zero, bool):
            raise ValueError("Chunk zero flag must be a boolean")

        return cls(offset, length, chunk_hash.lower(), is_zero)


class Manifest:
    """
    Immutable description of a snapshot's content layout.

    The chunk size, hash algorithm and blob compression are declared by the
    manifest itself; nothing about them is assumed by the restorer.
    """

    def __init__(
        self,
        file_size: int,
        chunk_size: int,
        chunks: List[ChunkRef],
        hash_algorithm: str = 'sha256',
        compression: str = 'none',
        metadata: Optional[dict] = None,
    ):
        """
        Create a manifest.

        Args:
            file_size: logical size of the snapshot file in bytes
            chunk_size: nominal chunk length for this backup set
            chunks: ordered chunk descriptors
            hash_algorithm: algorithm used for chunk hashes
            compression: how chunk blobs are encoded in the backend
            metadata: optional metadata (hostname, tag, etc)
        """
        self.file_size = file_size
        self.chunk_size = chunk_size
        self.chunks = tuple(chunks)
        self.hash_algorithm = hash_algorithm
        self.compression = compression
        self.metadata = metadata or {}

    def to_dict(self) -> dict:
        """
        Convert manifest to storable dictionary representation.

        Returns canonical dict that can be hashed and stored.
        """
        content = {
            'file_size': self.file_size,
            'chunk_size': self.chunk_size,
            'hash_algorithm': self.hash_algorithm,
            'compression': self.compression,
            'chunks': [chunk.to_dict() for chunk in self.chunks],
        }

        obj = {
            'type': 'manifest',
            'content': content,
        }

        if self.metadata:
            obj['metadata'] = self.metadata

        return obj

    @classmethod
    def from_dict(cls, data: dict) -> 'Manifest':
        """
        Reconstruct manifest from stored dictionary.

        Only checks shape and types; layout invariants are checked
        separately by verify_manifest().

        Raises ValueError if data is invalid.
        """
        if not isinstance(data, dict):
            raise ValueError("Manifest must be an object")

        if data.get('type') != 'manifest':
            raise ValueError(f"Invalid manifest type: {data.get('type')}")

        content = data.get('content')
        if not isinstance(content, dict):
            raise ValueError("Manifest missing content field")

        for field in ('file_size', 'chunk_size', 'chunks'):
            if field not in content:
                raise ValueError(f"Manifest content missing {field} field")

        file_size = content['file_size']
        chunk_size = content['chunk_size']
        if not _is_int(file_size) or not _is_int(chunk_size):
            raise ValueError("Manifest file_size and chunk_size must be integers")

        raw_chunks = content['chunks']
        if not isinstance(raw_chunks, list):
            raise ValueError("Manifest chunks must be a list")

        chunks = [ChunkRef.from_dict(entry) for entry in raw_chunks]

        metadata = data.get('metadata', {})
        if not isinstance(metadata, dict):
            raise ValueError("Metadata must be a dictionary")

        return cls(
            file_size=file_size,
            chunk_size=chunk_size,
            chunks=chunks,
            hash_algorithm=content.get('hash_algorithm', 'sha256'),
            compression=content.get('compression', 'none'),
            metadata=metadata,
        )

    def compute_hash(self) -> str:
        """Compute the storage key of this manifest."""
        return compute_object_hash(self.to_dict())

    def chunk_count(self) -> int:
        return len(self.chunks)

    def zero_chunk_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.is_zero)

    def __repr__(self) -> str:
        return (
            f"Manifest(size={self.file_size}, chunks={len(self.chunks)}, "
            f"chunk_size={self.chunk_size}, algo={self.hash_algorithm})"
        )


def _is_int(value) -> bool:
    # bool is a subclass of int; JSON true/false must not pass as sizes
    return isinstance(value, int) and not isinstance(value, bool)
