"""
Restore engine.

Main entry point coordinating snapshot selection, manifest loading,
chunk diffing and the concurrent fetch-and-write of the destination.
"""

import enum
import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .config import RestoreConfig
from .errors import ChunkCorruptError, RestoreCancelledError
from .integrity.verification import verify_chunk_data
from .model.manifest import ChunkRef, Manifest
from .model.snapshot import Snapshot, parse_timestamp
from .restore.differ import ChunkDiffer
from .restore.index import SnapshotIndex
from .restore.loader import load_manifest
from .retry import RetryingBackend
from .storage.backend import Backend, resolve_source
from .storage.codec import decode_chunk
from .storage.destination import DestinationFile, destination_path
from .storage.layout import BackupSetLayout

logger = logging.getLogger(__name__)


class ChunkOutcome(enum.Enum):
    """Terminal state of one chunk in a restore."""

    SKIPPED = 'skipped'
    FETCHED = 'fetched'
    ZERO_FILLED = 'zero-filled'


@dataclass
class RestoreReport:
    """Summary of a successful restore."""

    snapshot: Snapshot
    file_size: int
    chunk_count: int
    outcomes: Counter = field(default_factory=Counter)
    bytes_fetched: int = 0
    elapsed: float = 0.0

    @property
    def fetched(self) -> int:
        return self.outcomes[ChunkOutcome.FETCHED]

    @property
    def skipped(self) -> int:
        return self.outcomes[ChunkOutcome.SKIPPED]

    @property
    def zero_filled(self) -> int:
        return self.outcomes[ChunkOutcome.ZERO_FILLED]


class RestoreJob:
    """
    Per-call state of one restore.

    Owned by a single restore_from_backup call and discarded when it
    returns. Workers share it through the lock-guarded methods below.
    Chunk fetches go through a retrying backend that gives up once the
    job is stopping.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        manifest: Manifest,
        destination: DestinationFile,
        backend: Backend,
        config: RestoreConfig,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            snapshot: selected snapshot
            manifest: its verified manifest
            destination: open destination, not yet resized
            backend: backend holding the backup set, without retries
            config: restore settings
            sleep: sleep function used between retries
            cancel_event: optional external cancellation
        """
        self.snapshot = snapshot
        self.manifest = manifest
        self.destination = destination
        self.layout = BackupSetLayout(snapshot.backup_set)
        self.original_size = destination.size()
        self.differ = ChunkDiffer(
            destination, manifest.hash_algorithm, extended_from=self.original_size,
        )
        self.stop_event = threading.Event()
        self.external_cancel = cancel_event
        self.first_error: Optional[BaseException] = None
        self.outcomes: Counter = Counter()
        self.bytes_fetched = 0
        self.processed = 0
        self._lock = threading.Lock()
        self._pending = iter(manifest.chunks)
        self.backend = RetryingBackend(backend, config, sleep=sleep, should_stop=self.should_stop)

    def should_stop(self) -> bool:
        if self.stop_event.is_set():
            return True
        return self.external_cancel is not None and self.external_cancel.is_set()

    def next_chunk(self) -> Optional[ChunkRef]:
        """Hand out the next unprocessed chunk, or None when done or stopping."""
        if self.should_stop():
            return None
        with self._lock:
            return next(self._pending, None)

    def record(self, chunk: ChunkRef, outcome: ChunkOutcome) -> None:
        with self._lock:
            self.outcomes[outcome] += 1
            self.processed += 1
            if outcome is ChunkOutcome.FETCHED:
                self.bytes_fetched += chunk.length

    def fail(self, error: BaseException) -> None:
        """Keep the first error and tell every worker to stop."""
        with self._lock:
            if self.first_error is None:
                self.first_error = error
        self.stop_event.set()

    @property
    def remaining(self) -> int:
        return self.manifest.chunk_count() - self.processed


class Restorer:
    """
    Restores a file to its state at or before a point in time.

    The restorer holds no state between calls; each call builds its own
    RestoreJob, so one instance can serve concurrent restores.
    """

    def __init__(
        self,
        config: Optional[RestoreConfig] = None,
        resolve: Callable[[str, RestoreConfig], Tuple[Backend, str]] = resolve_source,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: restore settings, defaults to RestoreConfig()
            resolve: maps a SOURCE string to (backend, backup_set_path)
            sleep: sleep function used between retries
        """
        self.config = config or RestoreConfig()
        self.resolve = resolve
        self.sleep = sleep

    # ========== Public API ==========

    def restore_from_backup(
        self,
        source: str,
        destination: str | Path,
        target_time=None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RestoreReport:
        """
        Restore `destination` from the newest snapshot at or before target_time.

        Args:
            source: backup set location (path, file://, s3://, gs://)
            destination: local file path or file:// URI
            target_time: Unix seconds (int or string) or aware datetime;
                None means now, taken when this call starts
            cancel_event: optional event that stops the restore when set

        Returns:
            RestoreReport on success.

        Raises InvalidTimestampError, SnapshotNotFoundError, CorruptError,
        BackendError, DestinationUnwritableError or RestoreCancelledError.
        On failure the destination may be partially updated; calling again
        resumes, since matching chunks are skipped.
        """
        started = time.monotonic()
        if target_time is None:
            target_time = int(time.time())
        target = parse_timestamp(target_time)
        dest_path = destination_path(destination)

        backend, backup_set = self.resolve(source, self.config)
        metadata = RetryingBackend(backend, self.config, sleep=self.sleep)

        snapshot = SnapshotIndex(metadata, backup_set).select_snapshot(target)
        manifest = load_manifest(metadata, snapshot)

        with DestinationFile(
            dest_path,
            punch_holes=self.config.punch_holes,
            zero_scan_block=self.config.zero_scan_block,
        ) as dest:
            report = self.restore_snapshot(backend, snapshot, manifest, dest, cancel_event)

        report.elapsed = time.monotonic() - started
        logger.info(
            "Restored %s to snapshot %d: %d fetched (%d bytes), %d skipped, "
            "%d zero-filled in %.2fs",
            dest_path, snapshot.timestamp, report.fetched, report.bytes_fetched,
            report.skipped, report.zero_filled, report.elapsed,
        )
        return report

    def list_snapshots(self, source: str) -> List[Snapshot]:
        """List every snapshot in a backup set, oldest first."""
        raw_backend, backup_set = self.resolve(source, self.config)
        backend = RetryingBackend(raw_backend, self.config, sleep=self.sleep)
        return SnapshotIndex(backend, backup_set).list_snapshots()

    def restore_snapshot(
        self,
        backend: Backend,
        snapshot: Snapshot,
        manifest: Manifest,
        destination: DestinationFile,
        cancel_event: Optional[threading.Event] = None,
    ) -> RestoreReport:
        """
        Bring an open destination to exactly the manifest's content.

        Sizes the destination, then runs the chunk workers. `backend` is
        the plain backend; the job adds retries bound to its own stop state.
        """
        job = RestoreJob(
            snapshot, manifest, destination, backend, self.config,
            sleep=self.sleep, cancel_event=cancel_event,
        )

        destination.set_size(manifest.file_size)
        self._run_workers(job)

        if job.first_error is not None:
            raise job.first_error
        if job.remaining:
            raise RestoreCancelledError(job.remaining)

        destination.flush()
        return RestoreReport(
            snapshot=snapshot,
            file_size=manifest.file_size,
            chunk_count=manifest.chunk_count(),
            outcomes=job.outcomes,
            bytes_fetched=job.bytes_fetched,
        )

    # ========== Workers ==========

    def _run_workers(self, job: RestoreJob) -> None:
        """
        Process every chunk on a bounded pool.

        Workers pull chunks one at a time and stop pulling once the job is
        told to stop; a chunk already started always finishes.
        """
        workers = max(1, min(self.config.concurrency, job.manifest.chunk_count()))
        if not job.manifest.chunks:
            return

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='restore') as pool:
            futures = [pool.submit(self._worker, job) for _ in range(workers)]
            try:
                wait(futures)
            except KeyboardInterrupt:
                logger.warning("Interrupted; waiting for in-flight chunks to finish")
                job.stop_event.set()
                raise

    def _worker(self, job: RestoreJob) -> None:
        while True:
            chunk = job.next_chunk()
            if chunk is None:
                return
            try:
                outcome = self._process_chunk(job, chunk)
            except Exception as e:
                logger.debug("Chunk at offset %d failed: %s", chunk.offset, e)
                job.fail(e)
                return
            job.record(chunk, outcome)
            logger.debug("Chunk at offset %d: %s", chunk.offset, outcome.value)

    def _process_chunk(self, job: RestoreJob, chunk: ChunkRef) -> ChunkOutcome:
        """Bring one chunk's range up to date. Detection precedes any write."""
        if chunk.is_zero:
            if not job.differ.needs_fetch(chunk):
                return ChunkOutcome.SKIPPED
            job.destination.punch_hole(chunk.offset, chunk.length)
            return ChunkOutcome.ZERO_FILLED

        if not job.differ.needs_fetch(chunk):
            return ChunkOutcome.SKIPPED

        data = self._fetch_chunk(job, chunk)
        job.destination.write_at(chunk.offset, data)
        return ChunkOutcome.FETCHED

    def _fetch_chunk(self, job: RestoreJob, chunk: ChunkRef) -> bytes:
        """
        Read a chunk blob by hash and return its verified raw bytes.

        Raises ChunkCorruptError if the blob does not decode to bytes with
        the expected hash; nothing is written in that case.
        """
        key = job.layout.chunk_key(chunk.hash)
        blob = job.backend.read(key)
        try:
            data = decode_chunk(blob, job.manifest.compression, chunk.length)
        except ValueError as e:
            raise ChunkCorruptError(chunk.offset, chunk.hash, f"<undecodable blob: {e}>")
        verify_chunk_data(data, chunk, job.manifest.hash_algorithm)
        return data


def restore_from_backup(
    source: str,
    destination: str | Path,
    target_time=None,
    config: Optional[RestoreConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RestoreReport:
    """Restore with a one-off Restorer; see Restorer.restore_from_backup."""
    return Restorer(config).restore_from_backup(
        source, destination, target_time, cancel_event=cancel_event,
    )
