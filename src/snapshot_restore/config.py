"""
Restore configuration.

Passed explicitly into every restore call; there is no module-level
mutable configuration.
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

ENV_PREFIX = 'SNAPSHOT_RESTORE_'


def default_concurrency() -> int:
    """A small multiple of available parallelism, capped."""
    return min(32, 4 * (os.cpu_count() or 1))


@dataclass(frozen=True)
class RestoreConfig:
    """Settings for one restore invocation."""

    concurrency: int = 0
    max_retries: int = 5
    retry_base_delay: float = 0.5
    retry_max_delay: float = 30.0
    punch_holes: bool = True
    zero_scan_block: int = 1 << 20
    s3_endpoint_url: Optional[str] = None
    s3_region: Optional[str] = None

    def __post_init__(self):
        if self.concurrency <= 0:
            object.__setattr__(self, 'concurrency', default_concurrency())
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ValueError("retry delays must be >= 0")
        if self.zero_scan_block <= 0:
            raise ValueError("zero_scan_block must be > 0")

    def with_overrides(self, **changes) -> 'RestoreConfig':
        """Return a copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'RestoreConfig':
        """
        Build a config from SNAPSHOT_RESTORE_* environment variables.

        Recognized variables:
            SNAPSHOT_RESTORE_CONCURRENCY
            SNAPSHOT_RESTORE_MAX_RETRIES
            SNAPSHOT_RESTORE_RETRY_BASE_DELAY
            SNAPSHOT_RESTORE_RETRY_MAX_DELAY
            SNAPSHOT_RESTORE_PUNCH_HOLES     (0/1)
            SNAPSHOT_RESTORE_S3_ENDPOINT
            SNAPSHOT_RESTORE_S3_REGION

        Unset variables keep their defaults. Raises ValueError on
        unparseable values.
        """
        env = os.environ if environ is None else environ

        def get(name):
            value = env.get(ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        def as_int(name):
            value = get(name)
            return int(value) if value is not None else None

        def as_float(name):
            value = get(name)
            return float(value) if value is not None else None

        def as_bool(name):
            value = get(name)
            if value is None:
                return None
            return value.lower() in ('1', 'true', 'yes', 'on')

        return cls().with_overrides(
            concurrency=as_int('CONCURRENCY'),
            max_retries=as_int('MAX_RETRIES'),
            retry_base_delay=as_float('RETRY_BASE_DELAY'),
            retry_max_delay=as_float('RETRY_MAX_DELAY'),
            punch_holes=as_bool('PUNCH_HOLES'),
            s3_endpoint_url=get('S3_ENDPOINT'),
            s3_region=get('S3_REGION'),
        )
