"""
Manifest invariants and their verification.

Each invariant is a named check over one decoded manifest. A manifest must
pass all of them before a restore may touch the destination.
"""

import re
from typing import Callable, List, NamedTuple, Tuple

from .errors import InvariantViolationError
from .integrity.hashing import DIGEST_HEX_LENGTH, SUPPORTED_ALGORITHMS, zero_chunk_hash
from .storage.codec import SUPPORTED_COMPRESSION

MAX_CHUNK_LENGTH = 2 ** 32 - 1

HEX_DIGEST = re.compile(r"[0-9a-f]{%d}" % DIGEST_HEX_LENGTH)


class Invariant(NamedTuple):
    """A named layout guarantee and the check that enforces it."""

    name: str
    description: str
    check: Callable[[], bool]

    def verify(self) -> None:
        """
        Run the check.

        A check either returns False or raises InvariantViolationError with
        specifics; any other exception counts as a violation too.
        """
        try:
            held = self.check()
        except InvariantViolationError:
            raise
        except Exception as e:
            raise InvariantViolationError(self.name, f"{self.description}: check failed with {e}")
        if not held:
            raise InvariantViolationError(self.name, self.description)


class InvariantRegistry:
    """
    Ordered set of invariants over one manifest.

    Order matters: later checks assume earlier ones hold (coverage is only
    meaningful once offsets are contiguous).
    """

    def __init__(self):
        self.invariants: List[Invariant] = []

    def register(self, name: str, description: str, check: Callable[[], bool]) -> None:
        self.invariants.append(Invariant(name, description, check))

    def verify_first_failure(self) -> None:
        """Raise InvariantViolationError for the first invariant that fails."""
        for invariant in self.invariants:
            invariant.verify()

    def verify_all(self) -> dict:
        """
        Run every invariant, collecting failures instead of stopping.

        Returns {'passed': [names], 'failed': [(name, message)], 'all_passed': bool}.
        """
        passed: List[str] = []
        failed: List[Tuple[str, str]] = []
        for invariant in self.invariants:
            try:
                invariant.verify()
            except InvariantViolationError as e:
                failed.append((invariant.name, str(e)))
            else:
                passed.append(invariant.name)
        return {'passed': passed, 'failed': failed, 'all_passed': not failed}

    def list_invariants(self) -> List[Tuple[str, str]]:
        return [(invariant.name, invariant.description) for invariant in self.invariants]


def create_manifest_invariants(manifest) -> InvariantRegistry:
    """
    Create the layout invariants for one manifest.
    """
    registry = InvariantRegistry()

    def check_parameters():
        if manifest.hash_algorithm not in SUPPORTED_ALGORITHMS:
            raise InvariantViolationError(
                "known_parameters",
                f"unsupported hash algorithm {manifest.hash_algorithm!r}",
            )
        if manifest.compression not in SUPPORTED_COMPRESSION:
            raise InvariantViolationError(
                "known_parameters",
                f"unsupported compression {manifest.compression!r}",
            )
        if manifest.chunk_size <= 0 or manifest.chunk_size > MAX_CHUNK_LENGTH:
            raise InvariantViolationError(
                "known_parameters", f"invalid chunk size {manifest.chunk_size}"
            )
        if manifest.file_size < 0:
            raise InvariantViolationError(
                "known_parameters", f"negative file size {manifest.file_size}"
            )
        return True

    registry.register(
        "known_parameters",
        "Hash algorithm and compression are supported, sizes are in range",
        check_parameters,
    )

    def check_hash_format():
        for index, chunk in enumerate(manifest.chunks):
            if not HEX_DIGEST.fullmatch(chunk.hash):
                raise InvariantViolationError(
                    "chunk_hash_format",
                    f"chunk {index} hash {chunk.hash!r} is not a "
                    f"{DIGEST_HEX_LENGTH}-character hex digest",
                )
        return True

    registry.register(
        "chunk_hash_format",
        "Every chunk hash is a lowercase hex digest of the declared algorithm",
        check_hash_format,
    )

    def check_contiguity():
        expected_offset = 0
        for index, chunk in enumerate(manifest.chunks):
            if chunk.offset != expected_offset:
                raise InvariantViolationError(
                    "contiguous_offsets",
                    f"chunk {index} starts at {chunk.offset}, expected {expected_offset}",
                )
            if chunk.length <= 0:
                raise InvariantViolationError(
                    "contiguous_offsets",
                    f"chunk {index} has non-positive length {chunk.length}",
                )
            expected_offset = chunk.end
        return True

    registry.register(
        "contiguous_offsets",
        "Chunk offsets start at 0 and are contiguous and strictly increasing",
        check_contiguity,
    )

    def check_coverage():
        covered = manifest.chunks[-1].end if manifest.chunks else 0
        if covered != manifest.file_size:
            raise InvariantViolationError(
                "full_coverage",
                f"chunks cover {covered} bytes but file size is {manifest.file_size}",
            )
        return True

    registry.register(
        "full_coverage",
        "Chunks cover exactly [0, file_size)",
        check_coverage,
    )

    def check_chunk_sizes():
        last = len(manifest.chunks) - 1
        for index, chunk in enumerate(manifest.chunks):
            if index < last and chunk.length != manifest.chunk_size:
                raise InvariantViolationError(
                    "uniform_chunk_size",
                    f"chunk {index} has length {chunk.length}, "
                    f"expected {manifest.chunk_size}",
                )
            if chunk.length > manifest.chunk_size:
                raise InvariantViolationError(
                    "uniform_chunk_size",
                    f"chunk {index} is longer than the chunk size",
                )
        return True

    registry.register(
        "uniform_chunk_size",
        "Every chunk except the last has the nominal chunk size",
        check_chunk_sizes,
    )

    def check_zero_hashes():
        for index, chunk in enumerate(manifest.chunks):
            if not chunk.is_zero:
                continue
            expected = zero_chunk_hash(chunk.length, manifest.hash_algorithm)
            if chunk.hash != expected:
                raise InvariantViolationError(
                    "zero_chunk_hash",
                    f"zero chunk {index} carries hash {chunk.hash}, expected {expected}",
                )
        return True

    registry.register(
        "zero_chunk_hash",
        "Zero-flagged chunks carry the hash of the all-zero pattern",
        check_zero_hashes,
    )

    return registry
