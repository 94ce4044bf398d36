"""
Background progress sampling for one collection sync.

The diff and the apply workers bump shared counters; a daemon thread
samples them every status interval and reports either scan throughput or
write counts. The monitor only reads counters and never blocks the work
it observes.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from docsync.config import STATUS_INTERVAL_MS, THROUGHPUT_WINDOW
from docsync.metrics import SYNC_THROUGHPUT

logger = logging.getLogger(__name__)

SCAN_PHASE = "scan"
SYNC_PHASE = "sync"


@dataclass(frozen=True)
class ScanProgress:
    """Progress of the merge-diff over the source collection."""

    records_processed: int
    records_per_second: float
    percent_complete: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SyncProgress:
    """Records written to the target so far."""

    created: int
    updated: int
    deleted: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


Progress = ScanProgress | SyncProgress
ProgressCallback = Callable[[str, Progress], None]


class SyncCounters:
    """
    Mutex-guarded counters shared by the diff, the apply workers and the
    monitor thread.
    """

    OPERATIONS = ("create", "update", "delete")

    def __init__(self, collection: str = ""):
        self.collection = collection
        self._lock = threading.Lock()
        self._scanned = 0
        self._applied = dict.fromkeys(self.OPERATIONS, 0)

    def record_scanned(self, count: int = 1) -> None:
        with self._lock:
            self._scanned += count

    def record_applied(self, operation: str, count: int) -> None:
        if operation not in self._applied:
            raise ValueError(f"Unknown operation '{operation}'")
        with self._lock:
            self._applied[operation] += count

    @property
    def scanned(self) -> int:
        with self._lock:
            return self._scanned

    @property
    def created(self) -> int:
        with self._lock:
            return self._applied["create"]

    @property
    def updated(self) -> int:
        with self._lock:
            return self._applied["update"]

    @property
    def deleted(self) -> int:
        with self._lock:
            return self._applied["delete"]

    def applied(self) -> SyncProgress:
        """Consistent snapshot of the write counters."""
        with self._lock:
            return SyncProgress(
                created=self._applied["create"],
                updated=self._applied["update"],
                deleted=self._applied["delete"],
            )


class ProgressMonitor:
    """
    Periodic sampler of SyncCounters.

    In the scan phase each sample appends the number of records scanned
    since the previous sample to a fixed-size window; throughput is the
    window total over the time the window spans. After
    enter_sync_phase() samples report write counts instead.
    """

    def __init__(
        self,
        collection: str,
        counters: SyncCounters,
        total_records: int,
        callback: ProgressCallback | None = None,
        interval_ms: int = STATUS_INTERVAL_MS,
        window: int = THROUGHPUT_WINDOW,
    ):
        """
        Initialize the monitor

        Args:
            collection: Collection name passed to the callback
            counters: Counters to sample
            total_records: Source record count, for percent complete
            callback: Called with (collection, progress) on every sample
            interval_ms: Sampling interval in milliseconds
            window: Number of deltas in the rolling throughput window
        """
        self.collection = collection
        self.counters = counters
        self.total_records = total_records
        self.callback = callback
        self.interval = interval_ms / 1000
        self.phase = SCAN_PHASE

        self._deltas: deque[int] = deque(maxlen=window)
        self._last_scanned = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._sample_lock = threading.Lock()

    def start(self) -> "ProgressMonitor":
        if self._thread is not None:
            raise RuntimeError(f"Progress monitor for '{self.collection}' already started")

        self._thread = threading.Thread(
            target=self._run,
            name=f"docsync-progress-{self.collection}",
            daemon=True,
        )
        self._thread.start()
        return self

    def enter_sync_phase(self) -> None:
        """Switch reporting from scan throughput to write counts."""
        with self._sample_lock:
            self.phase = SYNC_PHASE
        SYNC_THROUGHPUT.labels(collection=self.collection).set(0)

    def stop(self, final_sample: bool = True) -> Progress | None:
        """
        Stop sampling.

        Args:
            final_sample: Emit one last sample so the reported numbers are final

        Returns:
            The final sample, or None when not requested
        """
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

        return self.sample() if final_sample else None

    def sample(self) -> Progress:
        """Take one sample and hand it to the callback."""
        with self._sample_lock:
            if self.phase == SCAN_PHASE:
                progress: Progress = self._scan_progress()
            else:
                progress = self.counters.applied()

        if self.callback is not None:
            self.callback(self.collection, progress)
        return progress

    def _scan_progress(self) -> ScanProgress:
        scanned = self.counters.scanned
        self._deltas.append(scanned - self._last_scanned)
        self._last_scanned = scanned

        rate = sum(self._deltas) / (len(self._deltas) * self.interval)
        SYNC_THROUGHPUT.labels(collection=self.collection).set(rate)

        if self.total_records == 0:
            percent = 100.0
        else:
            percent = min(100.0, scanned * 100.0 / self.total_records)

        return ScanProgress(
            records_processed=scanned,
            records_per_second=rate,
            percent_complete=percent,
        )

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.sample()
            except Exception as e:
                logger.warning(f"Progress sample for '{self.collection}' failed: {e}")

    def __enter__(self) -> "ProgressMonitor":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop(final_sample=exc_type is None)
