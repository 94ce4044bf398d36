"""
Job functions for scheduled syncs.

Each run opens its own stores, resolves the collection list against the
source at run time, syncs and writes a timestamped JSON report.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from docsync.config import ConnectionConfig, SyncSettings
from docsync.report import export_report_json, generate_report
from docsync.store import DocumentStore, PostgresDocumentStore
from docsync.sync import select_collections, sync_collections
from utils.tracing import trace_function

logger = logging.getLogger(__name__)

StoreFactory = Callable[[ConnectionConfig, str, SyncSettings], DocumentStore]


def _postgres_store(config: ConnectionConfig, role: str, settings: SyncSettings) -> DocumentStore:
    return PostgresDocumentStore.from_config(config, role, settings)


@trace_function("docsync.scheduled_sync", component="scheduler")
def sync_job_wrapper(
    source_config: ConnectionConfig,
    target_config: ConnectionConfig,
    source_db: str,
    target_db: str,
    output_dir: str,
    pick_collections: list[str] | None = None,
    omit_collections: list[str] | None = None,
    settings: SyncSettings | None = None,
    store_factory: StoreFactory = _postgres_store,
) -> dict[str, Any]:
    """
    Run one scheduled sync and save its report

    Args:
        source_config: Source server connection settings
        target_config: Target server connection settings
        source_db: Source database name
        target_db: Target database name
        output_dir: Directory receiving sync_<timestamp>.json reports
        pick_collections: Only sync these collections
        omit_collections: Sync all collections except these
        settings: Sync tuning
        store_factory: Builds a store from (config, role, settings)

    Returns:
        The generated report
    """
    settings = settings or SyncSettings()
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    output_path = Path(output_dir) / f"sync_{timestamp}.json"
    Path(output_dir).mkdir(parents=True, exist_ok=True)

    logger.info(f"Starting scheduled sync {source_db} -> {target_db} at {timestamp}")
    started = time.monotonic()

    with store_factory(source_config, "source", settings) as source, \
            store_factory(target_config, "target", settings) as target:
        if not source.database_exists(source_db):
            raise LookupError(f"Source database '{source_db}' does not exist")

        names = select_collections(
            source.list_collections(source_db),
            pick=pick_collections,
            omit=omit_collections,
        )
        summaries = sync_collections(
            source, target, source_db, target_db, names, settings=settings
        )

    report = generate_report(
        summaries,
        source_db=source_db,
        target_db=target_db,
        elapsed=time.monotonic() - started,
    )
    export_report_json(report, str(output_path))

    logger.info(f"Scheduled sync complete. Report saved to {output_path}")
    logger.info(f"Status: {report['status']} ({report['completed']}/{report['total_collections']})")

    return report
