"""
Prometheus metrics for collection sync.

Metrics live in the default registry and are exposed by
utils.metrics.MetricsPublisher when a metrics port is configured.
"""

from prometheus_client import Counter, Gauge, Histogram

from utils.metrics import get_or_create_metric

RECORDS_SCANNED = get_or_create_metric(
    lambda: Counter(
        "docsync_records_scanned_total",
        "Source records consumed by the diff",
        ["collection"],
    ),
    "docsync_records_scanned_total",
)

CHANGES_APPLIED = get_or_create_metric(
    lambda: Counter(
        "docsync_changes_applied_total",
        "Records written to the target",
        ["collection", "operation"],  # create, update, delete
    ),
    "docsync_changes_applied_total",
)

CHANGE_SET_SIZE = get_or_create_metric(
    lambda: Gauge(
        "docsync_change_set_size",
        "Keys classified by the last diff of a collection",
        ["collection", "bucket"],
    ),
    "docsync_change_set_size",
)

COLLECTION_SYNC_TIME = get_or_create_metric(
    lambda: Histogram(
        "docsync_collection_sync_seconds",
        "Time to diff and apply one collection",
        ["collection"],
        buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600, 1800],
    ),
    "docsync_collection_sync_seconds",
)

BULK_OPERATION_TIME = get_or_create_metric(
    lambda: Histogram(
        "docsync_bulk_operation_seconds",
        "Time for one bulk request against the target",
        ["operation"],
        buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
    ),
    "docsync_bulk_operation_seconds",
)

COLLECTIONS_PROCESSED = get_or_create_metric(
    lambda: Counter(
        "docsync_collections_total",
        "Collections processed",
        ["status"],  # complete, incomplete
    ),
    "docsync_collections_total",
)

INDEXES_CREATED = get_or_create_metric(
    lambda: Counter(
        "docsync_indexes_created_total",
        "Secondary indexes created on the target",
        ["collection"],
    ),
    "docsync_indexes_created_total",
)

SYNC_THROUGHPUT = get_or_create_metric(
    lambda: Gauge(
        "docsync_sync_throughput_records_per_second",
        "Rolling scan throughput of the running collection",
        ["collection"],
    ),
    "docsync_sync_throughput_records_per_second",
)
