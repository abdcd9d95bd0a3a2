"""
Local/remote chunk comparison.

Decides, chunk by chunk, whether the destination already holds the bytes
a snapshot expects.
"""

from typing import Optional

from ..integrity.hashing import new_hasher
from ..model.manifest import ChunkRef
from ..storage.destination import DestinationFile


class ChunkDiffer:
    """
    Compares destination ranges against manifest chunks.

    Hashes with the manifest's algorithm, reading in bounded blocks so
    large chunks never have to fit in memory twice.
    """

    def __init__(
        self,
        destination: DestinationFile,
        hash_algorithm: str,
        block_size: int = 1 << 20,
        extended_from: Optional[int] = None,
    ):
        """
        Args:
            destination: open destination file
            hash_algorithm: manifest-declared chunk hash algorithm
            block_size: read size used when hashing local ranges
            extended_from: size the destination had before it was extended
                to the snapshot size; bytes past it read as zeros and hold
                no local data
        """
        self.destination = destination
        self.hash_algorithm = hash_algorithm
        self.block_size = block_size
        self.extended_from = extended_from

    def local_hash(self, chunk: ChunkRef) -> str:
        """Hash of the destination's bytes in the chunk's range."""
        hasher = new_hasher(self.hash_algorithm)
        position = chunk.offset
        while position < chunk.end:
            step = min(self.block_size, chunk.end - position)
            hasher.update(self.destination.read_at(position, step))
            position += step
        return hasher.hexdigest()

    def is_local_zero(self, chunk: ChunkRef) -> bool:
        """True when the chunk's range exists locally and reads as zeros."""
        return self.destination.is_zero_range(chunk.offset, chunk.length)

    def needs_fetch(self, chunk: ChunkRef) -> bool:
        """
        Decide whether the chunk must be replaced.

        - Range not fully present locally: True for data chunks, without
          reading anything. A zero chunk lying wholly in the extended tail
          is already zero: False.
        - Zero chunk: False iff the range is already all zeros. A non-zero
          byte means the range cannot hash to the zero pattern, so no full
          hash is needed.
        - Otherwise: True iff the local hash differs from the chunk hash.
        """
        if self.extended_from is None:
            if self.destination.size() < chunk.end:
                return True
        elif chunk.end > self.extended_from:
            if not chunk.is_zero:
                return True
            if chunk.offset >= self.extended_from:
                return False
        if chunk.is_zero:
            return not self.is_local_zero(chunk)
        return self.local_hash(chunk) != chunk.hash


def needs_fetch(destination: DestinationFile, chunk: ChunkRef, hash_algorithm: str) -> bool:
    """Decide whether the destination's range for `chunk` must be replaced."""
    return ChunkDiffer(destination, hash_algorithm).needs_fetch(chunk)
