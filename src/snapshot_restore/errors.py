"""
Error types for restore operations.

All errors are explicit and never silent.
"""


class RestoreError(Exception):
    """Base exception for all restore errors."""
    pass


class InvalidTimestampError(RestoreError):
    """Raised when a timestamp argument cannot be parsed."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid timestamp: {value!r} (expected Unix seconds)")


class SnapshotNotFoundError(RestoreError):
    """Raised when no snapshot exists at or before the requested time."""

    def __init__(self, backup_set: str, target_time: int):
        self.backup_set = backup_set
        self.target_time = target_time
        super().__init__(
            f"No snapshot found in {backup_set or '.'!r} at or before timestamp {target_time}"
        )


class CorruptError(RestoreError):
    """Raised when stored data does not match what it claims to be."""
    pass


class ManifestCorruptError(CorruptError):
    """Raised when a manifest cannot be decoded or breaks its invariants."""

    def __init__(self, manifest_hash: str, reason: str):
        self.manifest_hash = manifest_hash
        self.reason = reason
        super().__init__(f"Manifest corrupted: {manifest_hash}\nReason: {reason}")


class ChunkCorruptError(CorruptError):
    """Raised when a fetched chunk's content does not match its hash."""

    def __init__(self, offset: int, expected: str, actual: str):
        self.offset = offset
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Chunk corrupted at offset {offset}\n"
            f"Expected hash: {expected}\n"
            f"Actual hash: {actual}"
        )


class InvariantViolationError(RestoreError):
    """Raised when a manifest invariant is violated."""

    def __init__(self, invariant: str, details: str):
        self.invariant = invariant
        self.details = details
        super().__init__(f"Invariant violation: {invariant}\nDetails: {details}")


class BackendError(RestoreError):
    """Base class for storage backend failures."""
    pass


class ObjectNotFoundError(BackendError):
    """Raised when a requested key does not exist in the backend."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Object not found: {key}")


class TransientBackendError(BackendError):
    """Raised by backends for failures worth retrying (timeouts, throttling)."""

    def __init__(self, operation: str, key: str, cause: Exception = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        msg = f"Transient backend error during {operation}: {key}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class BackendUnavailableError(BackendError):
    """Raised when transient failures exhausted their retry budget."""

    def __init__(self, operation: str, key: str, attempts: int, cause: Exception = None):
        self.operation = operation
        self.key = key
        self.attempts = attempts
        self.cause = cause
        msg = f"Backend unavailable during {operation}: {key} (gave up after {attempts} attempts)"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class UnsupportedSourceError(BackendError):
    """Raised when a source URI uses an unknown scheme."""

    def __init__(self, uri: str):
        self.uri = uri
        super().__init__(f"Unsupported backup source: {uri}")


class DestinationUnwritableError(RestoreError):
    """Raised when the destination file cannot be opened, resized, or written."""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        msg = f"Destination error during {operation}: {path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class RestoreCancelledError(RestoreError):
    """Raised when a restore is cancelled before every chunk was processed."""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"Restore cancelled with {remaining} chunk(s) not processed")
