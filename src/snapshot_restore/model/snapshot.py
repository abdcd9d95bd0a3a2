"""
Snapshot object model.

Snapshots identify one point-in-time backup of a file.
"""

from datetime import datetime, timezone

from ..errors import InvalidTimestampError


class Snapshot:
    """
    Immutable reference to one backup of a file.

    A snapshot is identified by its timestamp within a backup set and
    points at exactly one manifest object by hash.
    """

    __slots__ = ('timestamp', 'backup_set', 'manifest_hash')

    def __init__(self, timestamp: int, backup_set: str, manifest_hash: str):
        """
        Create a snapshot reference.

        Args:
            timestamp: seconds since epoch at which the backup was taken
            backup_set: backup-set path inside the backend
            manifest_hash: key of the manifest object
        """
        object.__setattr__(self, 'timestamp', int(timestamp))
        object.__setattr__(self, 'backup_set', backup_set)
        object.__setattr__(self, 'manifest_hash', manifest_hash)

    def __setattr__(self, name, value):
        raise AttributeError("Snapshot is immutable")

    def __eq__(self, other) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return (
            self.timestamp == other.timestamp
            and self.backup_set == other.backup_set
            and self.manifest_hash == other.manifest_hash
        )

    def __hash__(self) -> int:
        return hash((self.timestamp, self.backup_set, self.manifest_hash))

    @property
    def created_at(self) -> datetime:
        """Snapshot time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    def __repr__(self) -> str:
        return (
            f"Snapshot(timestamp={self.timestamp}, backup_set={self.backup_set!r}, "
            f"manifest={self.manifest_hash[:8]}...)"
        )


def parse_timestamp(value) -> int:
    """
    Parse a Unix timestamp in seconds.

    Accepts ints, datetimes and base-10 strings with an optional sign.
    Raises InvalidTimestampError for anything else.
    """
    if isinstance(value, bool):
        raise InvalidTimestampError(str(value))
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise InvalidTimestampError(value.isoformat())
        return int(value.timestamp())
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in ('+', '-') else text
        if not (digits.isascii() and digits.isdigit()):
            raise InvalidTimestampError(value)
        return int(text, 10)
    raise InvalidTimestampError(repr(value))
