"""
Chunked, concurrency-limited application of a ChangeSet.

Buckets run strictly in the order deletes, updates, creates, each behind
a barrier. Within a bucket, chunks of at most `batch_size` keys are
written by a small worker pool; chunks touch disjoint keys so their
completion order does not matter. A failed chunk is never retried: the
remaining chunks are abandoned and the failure is raised.
"""

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from opentelemetry import trace

from docsync.config import MAX_BATCH_SIZE, WRITE_CONCURRENCY
from docsync.diff import ChangeSet
from docsync.errors import BulkOperationFailed, StoreUnavailable
from docsync.metrics import BULK_OPERATION_TIME, CHANGES_APPLIED
from docsync.progress import SyncCounters
from docsync.store.base import CollectionRef, DocumentStore
from utils.tracing import add_span_event, trace_operation

logger = logging.getLogger(__name__)

# Bucket application order
BUCKET_ORDER = ("delete", "update", "create")


def chunk_keys(keys: Sequence[Any], size: int = MAX_BATCH_SIZE) -> list[list[Any]]:
    """
    Split an ordered key list into contiguous chunks.

    Produces ceil(len(keys) / size) chunks of at most `size` keys whose
    concatenation is the original list.

    Raises:
        ValueError: If size is not positive
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(keys[i:i + size]) for i in range(0, len(keys), size)]


class BatchDispatcher:
    """
    Applies one collection's ChangeSet to the target.

    Creates and updates fetch the full records from the source one chunk
    at a time, so at most `max_workers` chunks of records are held in
    memory.
    """

    def __init__(
        self,
        source: DocumentStore,
        target: DocumentStore,
        source_ref: CollectionRef,
        target_ref: CollectionRef,
        counters: SyncCounters | None = None,
        batch_size: int = MAX_BATCH_SIZE,
        max_workers: int = WRITE_CONCURRENCY,
    ):
        self.source = source
        self.target = target
        self.source_ref = source_ref
        self.target_ref = target_ref
        self.counters = counters or SyncCounters(target_ref.name)
        self.batch_size = batch_size
        self.max_workers = max_workers

    @property
    def collection(self) -> str:
        return self.target_ref.name

    def apply(self, change_set: ChangeSet) -> SyncCounters:
        """
        Apply deletes, then updates, then creates.

        Returns:
            The shared counters, holding the number of records written

        Raises:
            BulkOperationFailed: A chunk failed; counters hold what was applied
            StoreUnavailable: A store could not be reached
        """
        buckets = {
            "delete": change_set.deletes,
            "update": change_set.updates,
            "create": change_set.creates,
        }

        for operation in BUCKET_ORDER:
            self.apply_bucket(operation, buckets[operation])

        return self.counters

    def apply_bucket(self, operation: str, keys: Sequence[Any]) -> int:
        """
        Apply one bucket and wait for all of its chunks.

        Args:
            operation: "create", "update" or "delete"
            keys: Ordered keys of the bucket

        Returns:
            Number of records written for this bucket
        """
        if operation not in BUCKET_ORDER:
            raise ValueError(f"Unknown operation '{operation}'")

        chunks = chunk_keys(keys, self.batch_size)
        if not chunks:
            return 0

        logger.debug(
            f"Applying {len(keys)} {operation}(s) to {self.target_ref} "
            f"in {len(chunks)} chunk(s)"
        )

        abort = threading.Event()
        failure: BaseException | None = None
        written = 0

        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(chunks)),
            thread_name_prefix=f"docsync-{operation}",
        ) as executor:
            futures = [
                executor.submit(self._apply_chunk, operation, chunk, abort)
                for chunk in chunks
            ]

            for future in as_completed(futures):
                if future.cancelled():
                    continue
                try:
                    written += future.result()
                except (BulkOperationFailed, StoreUnavailable) as e:
                    if failure is None:
                        failure = e
                        abort.set()
                        for pending in futures:
                            pending.cancel()

        if failure is not None:
            raise failure

        return written

    def _apply_chunk(self, operation: str, keys: list[Any], abort: threading.Event) -> int:
        if abort.is_set():
            return 0

        with trace_operation(
            "docsync.apply.chunk",
            kind=trace.SpanKind.CLIENT,
            collection=self.collection,
            operation=operation,
            keys=len(keys),
        ):
            try:
                with BULK_OPERATION_TIME.labels(operation=operation).time():
                    count = self._write(operation, keys)
            except StoreUnavailable:
                raise
            except Exception as e:
                add_span_event("chunk_failed", operation=operation, first_key=keys[0])
                raise BulkOperationFailed(self.collection, operation, keys, e) from e

        self.counters.record_applied(operation, count)
        CHANGES_APPLIED.labels(collection=self.collection, operation=operation).inc(count)
        return count

    def _write(self, operation: str, keys: list[Any]) -> int:
        if operation == "delete":
            return self.target.bulk_delete(self.target_ref, keys)

        records = self.source.bulk_fetch(self.source_ref, keys)
        if len(records) != len(keys):
            logger.warning(
                f"{len(keys) - len(records)} record(s) of {self.source_ref} vanished "
                f"between diff and {operation}"
            )

        if operation == "update":
            return self.target.bulk_replace(self.target_ref, records)
        return self.target.bulk_insert(self.target_ref, records)
