"""
Bounded retry with exponential backoff for transient backend failures.
"""

import logging
import time
from typing import Callable, List, Optional, TypeVar

from .errors import BackendUnavailableError, TransientBackendError
from .storage.backend import Backend

logger = logging.getLogger(__name__)

T = TypeVar('T')


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number `attempt` (0-based)."""
    return min(max_delay, base_delay * (2 ** attempt))


def retry_call(
    fn: Callable[[], T],
    config,
    operation: str,
    key: str,
    sleep: Callable[[float], None] = time.sleep,
    should_stop: Optional[Callable[[], bool]] = None,
) -> T:
    """
    Call fn, retrying on TransientBackendError.

    Args:
        fn: zero-argument callable performing one backend operation
        config: RestoreConfig providing max_retries and delays
        operation: operation name for error messages
        key: backend key for error messages
        sleep: injectable sleep function
        should_stop: when it returns True, no further attempts are made

    Returns whatever fn returns. Any other exception propagates on the
    first occurrence. Raises BackendUnavailableError once
    1 + config.max_retries attempts have failed.
    """
    attempts = 1 + config.max_retries
    last_error = None

    for attempt in range(attempts):
        try:
            return fn()
        except TransientBackendError as e:
            last_error = e
            if attempt == attempts - 1:
                break
            if should_stop is not None and should_stop():
                break
            delay = backoff_delay(attempt, config.retry_base_delay, config.retry_max_delay)
            logger.warning(
                "%s %s failed (attempt %d/%d), retrying in %.2fs: %s",
                operation, key, attempt + 1, attempts, delay, e.cause or e,
            )
            sleep(delay)

    raise BackendUnavailableError(
        operation,
        key,
        attempt + 1,
        last_error.cause if last_error is not None else None,
    )


class RetryingBackend(Backend):
    """
    Wraps a backend so every operation is retried on transient failure.

    Missing keys and other permanent errors are not retried.
    """

    def __init__(
        self,
        backend: Backend,
        config,
        sleep: Callable[[float], None] = time.sleep,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.backend = backend
        self.config = config
        self.sleep = sleep
        self.should_stop = should_stop
        self.scheme = backend.scheme

    def _retry(self, operation: str, key: str, fn):
        return retry_call(
            fn, self.config, operation, self.backend.describe(key),
            sleep=self.sleep, should_stop=self.should_stop,
        )

    def list(self, prefix: str) -> List[str]:
        return self._retry("list", prefix, lambda: self.backend.list(prefix))

    def exists(self, key: str) -> bool:
        return self._retry("exists", key, lambda: self.backend.exists(key))

    def read_range(self, key: str, offset: int, length: int) -> bytes:
        return self._retry("read", key, lambda: self.backend.read_range(key, offset, length))

    def read(self, key: str) -> bytes:
        return self._retry("read", key, lambda: self.backend.read(key))

    def write_range(self, key: str, offset: int, data: bytes) -> None:
        self._retry("write", key, lambda: self.backend.write_range(key, offset, data))

    def describe(self, key: str = '') -> str:
        return self.backend.describe(key)
