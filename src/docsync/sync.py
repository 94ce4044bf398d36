"""
Collection sync orchestration.

sync_collections() makes every named target collection an exact replica
of its source collection:

1. the target database is created when missing
2. target collections and indexes are aligned, all collections at once
3. collection by collection, the fingerprint streams are merge-diffed and
   the resulting ChangeSet is applied (deletes, updates, creates)

A failure confined to one collection is recorded on its summary and the
run moves on; an unreachable store ends the run.
"""

import logging
import time
from collections.abc import Iterable
from contextlib import closing
from dataclasses import asdict, dataclass, field
from typing import Any

from opentelemetry import trace

from docsync.apply import BatchDispatcher
from docsync.config import SyncSettings
from docsync.diff import ChangeSet, merge_diff
from docsync.errors import SchemaReconciliationFailed, StoreUnavailable
from docsync.metrics import (
    CHANGE_SET_SIZE,
    COLLECTION_SYNC_TIME,
    COLLECTIONS_PROCESSED,
    RECORDS_SCANNED,
)
from docsync.progress import ProgressCallback, ProgressMonitor, SyncCounters
from docsync.schema import SchemaReconciler
from docsync.store.base import CollectionRef, DocumentStore
from utils.logging import ContextLogger
from utils.tracing import add_span_attributes, trace_operation

logger = logging.getLogger(__name__)

PHASE_SCHEMA = "schema"
PHASE_DIFF = "diff"
PHASE_APPLY = "apply"


@dataclass
class CollectionSummary:
    """
    Outcome of syncing one collection.

    Counts are the records actually written. When `complete` is False,
    `phase` names where the sync stopped and `error` describes why; the
    counts then show what was applied before the failure.
    """

    collection: str
    created: int = 0
    updated: int = 0
    deleted: int = 0
    elapsed: float = 0.0
    complete: bool = False
    phase: str | None = None
    error: str | None = None
    scanned: int = 0
    planned: dict[str, int] = field(default_factory=dict)

    @property
    def applied(self) -> int:
        return self.created + self.updated + self.deleted

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def select_collections(
    available: Iterable[str],
    pick: Iterable[str] | None = None,
    omit: Iterable[str] | None = None,
) -> list[str]:
    """
    Resolve which source collections to sync.

    Args:
        available: Collections present in the source database
        pick: Sync only these collections (whitelist)
        omit: Sync everything except these collections (blacklist)

    Returns:
        Collection names in sync order: the pick order, or the source order

    Raises:
        ValueError: If both pick and omit are given, or a named
            collection does not exist on the source
    """
    available = list(available)
    pick = list(pick) if pick else None
    omit = list(omit) if omit else None

    if pick and omit:
        raise ValueError("pick and omit collections are mutually exclusive options")

    named = pick or omit or []
    unknown = [name for name in named if name not in available]
    if unknown:
        option = "pick" if pick else "omit"
        raise ValueError(
            f"Not all the collections to {option} exist on the source: {', '.join(unknown)}"
        )

    if pick:
        return list(dict.fromkeys(pick))
    if omit:
        return [name for name in available if name not in set(omit)]
    return available


def _ensure_databases(
    source: DocumentStore,
    target: DocumentStore,
    source_db: str,
    target_db: str,
) -> None:
    if not source.database_exists(source_db):
        raise LookupError(f"Source database '{source_db}' does not exist")

    if not target.database_exists(target_db):
        logger.info(f"Target database '{target_db}' does not exist, creating...")
        target.create_database(target_db)


def _record_change_set(collection: str, change_set: ChangeSet) -> None:
    for bucket, size in change_set.to_dict().items():
        CHANGE_SET_SIZE.labels(collection=collection, bucket=bucket).set(size)


def sync_collection(
    source: DocumentStore,
    target: DocumentStore,
    source_db: str,
    target_db: str,
    name: str,
    progress_callback: ProgressCallback | None = None,
    settings: SyncSettings | None = None,
) -> CollectionSummary:
    """
    Diff and apply one collection whose schema is already aligned.

    Raises:
        StoreUnavailable: A store could not be reached
    """
    settings = settings or SyncSettings()
    log = ContextLogger(__name__, collection=name)
    source_ref = CollectionRef(source_db, name)
    target_ref = CollectionRef(target_db, name)

    summary = CollectionSummary(collection=name, phase=PHASE_DIFF)
    counters = SyncCounters(name)
    started = time.monotonic()

    with trace_operation(
        "docsync.collection",
        kind=trace.SpanKind.INTERNAL,
        collection=name,
        source=str(source_ref),
        target=str(target_ref),
    ), COLLECTION_SYNC_TIME.labels(collection=name).time():
        monitor: ProgressMonitor | None = None
        try:
            total = source.count(source_ref)
            log.info(f"{total} records in {name}", total_records=total)

            monitor = ProgressMonitor(
                name,
                counters,
                total,
                callback=progress_callback,
                interval_ms=settings.status_interval_ms,
                window=settings.throughput_window,
            ).start()

            with closing(source.fingerprints(source_ref)) as source_stream, \
                    closing(target.fingerprints(target_ref)) as target_stream:
                change_set = merge_diff(
                    source_stream,
                    target_stream,
                    on_source_advance=counters.record_scanned,
                )

            summary.planned = change_set.to_dict()
            _record_change_set(name, change_set)
            log.info(f"Diff complete for {name}", **summary.planned)

            summary.phase = PHASE_APPLY
            monitor.enter_sync_phase()
            BatchDispatcher(
                source,
                target,
                source_ref,
                target_ref,
                counters=counters,
                batch_size=settings.batch_size,
                max_workers=settings.write_concurrency,
            ).apply(change_set)

            summary.complete = True
            summary.phase = None

        except StoreUnavailable:
            raise
        except Exception as e:
            summary.error = str(e)
            applied = counters.applied()
            log.error(
                f"Sync of '{name}' aborted during {summary.phase}: {e} "
                f"(applied: created {applied.created}, updated {applied.updated}, "
                f"deleted {applied.deleted})",
                exc_info=True,
                phase=summary.phase,
            )

        finally:
            if monitor is not None:
                monitor.stop(final_sample=True)
            RECORDS_SCANNED.labels(collection=name).inc(counters.scanned)

            applied = counters.applied()
            summary.created = applied.created
            summary.updated = applied.updated
            summary.deleted = applied.deleted
            summary.scanned = counters.scanned
            summary.elapsed = time.monotonic() - started

        add_span_attributes(
            complete=summary.complete,
            created=summary.created,
            updated=summary.updated,
            deleted=summary.deleted,
        )

    return summary


def sync_collections(
    source: DocumentStore,
    target: DocumentStore,
    source_db: str,
    target_db: str,
    collection_names: Iterable[str],
    progress_callback: ProgressCallback | None = None,
    settings: SyncSettings | None = None,
) -> list[CollectionSummary]:
    """
    Make the target collections exact replicas of the source collections.

    Args:
        source: Store holding the source database
        target: Store holding the target database
        source_db: Source database name
        target_db: Target database name (created when missing)
        collection_names: Collections to sync, in sync order
        progress_callback: Called with (collection, progress) on every
            progress sample
        settings: Batch size, concurrency and progress tuning

    Returns:
        One CollectionSummary per collection, in the order given

    Raises:
        LookupError: If the source database does not exist
        StoreUnavailable: If either store cannot be reached
    """
    settings = settings or SyncSettings()
    names = list(dict.fromkeys(collection_names))
    summaries: list[CollectionSummary] = []

    with trace_operation(
        "docsync.sync",
        kind=trace.SpanKind.INTERNAL,
        source_db=source_db,
        target_db=target_db,
        collection_count=len(names),
    ):
        _ensure_databases(source, target, source_db, target_db)

        schema = SchemaReconciler(
            source,
            target,
            source_db,
            target_db,
            max_workers=settings.metadata_concurrency,
        ).reconcile(names)

        for name in names:
            outcome = schema[name]
            if isinstance(outcome, SchemaReconciliationFailed):
                summary = CollectionSummary(
                    collection=name,
                    phase=PHASE_SCHEMA,
                    error=str(outcome),
                )
            else:
                summary = sync_collection(
                    source,
                    target,
                    source_db,
                    target_db,
                    name,
                    progress_callback=progress_callback,
                    settings=settings,
                )

            COLLECTIONS_PROCESSED.labels(
                status="complete" if summary.complete else "incomplete"
            ).inc()
            summaries.append(summary)

    completed = sum(1 for s in summaries if s.complete)
    logger.info(f"Synced {completed}/{len(summaries)} collection(s) from {source_db} to {target_db}")

    return summaries
