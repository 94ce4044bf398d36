"""
Target schema alignment.

Before any record is diffed, every target collection must exist with the
source's properties and carry every secondary index the source defines.
Collections are reconciled concurrently; each collection's own index
creations run on the same bounded pool.
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from opentelemetry import trace

from docsync.config import METADATA_CONCURRENCY
from docsync.errors import SchemaReconciliationFailed, StoreUnavailable
from docsync.metrics import INDEXES_CREATED
from docsync.store.base import CollectionRef, DocumentStore, IndexSpec
from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


def index_matches(source_index: IndexSpec, target_index: IndexSpec) -> bool:
    """
    Structural index equality.

    Type, field list (order-sensitive) and the unique, sparse and
    deduplicate flags must all agree. Names are ignored.
    """
    return (
        source_index.type == target_index.type
        and tuple(source_index.fields) == tuple(target_index.fields)
        and source_index.unique == target_index.unique
        and source_index.sparse == target_index.sparse
        and source_index.deduplicate == target_index.deduplicate
    )


@dataclass
class SchemaResult:
    """Outcome of reconciling one collection's schema."""

    collection: str
    created_collection: bool = False
    created_indexes: list[IndexSpec] = field(default_factory=list)


class SchemaReconciler:
    """
    Creates missing target collections and secondary indexes.

    Reconciliation is idempotent: a second run against an aligned target
    performs no writes.
    """

    def __init__(
        self,
        source: DocumentStore,
        target: DocumentStore,
        source_db: str,
        target_db: str,
        max_workers: int = METADATA_CONCURRENCY,
    ):
        self.source = source
        self.target = target
        self.source_db = source_db
        self.target_db = target_db
        self.max_workers = max_workers

    def ensure_collection(self, name: str) -> bool:
        """
        Create the target collection with the source's properties if missing.

        Returns:
            True when the collection was created
        """
        target_ref = CollectionRef(self.target_db, name)
        if self.target.collection_exists(target_ref):
            return False

        properties = self.source.collection_properties(CollectionRef(self.source_db, name))
        self.target.create_collection(target_ref, properties)
        logger.info(f"Created collection {target_ref} (waitForSync={properties.wait_for_sync})")
        return True

    def missing_indexes(self, name: str) -> list[IndexSpec]:
        """Secondary source indexes with no structural match on the target."""
        source_indexes = self.source.indexes(CollectionRef(self.source_db, name))
        target_indexes = self.target.indexes(CollectionRef(self.target_db, name))

        missing = []
        for spec in source_indexes:
            if spec.is_primary:
                continue
            if any(index_matches(spec, existing) for existing in target_indexes):
                continue
            # Two identical source specs only need one target index
            if any(index_matches(spec, pending) for pending in missing):
                continue
            missing.append(spec)
        return missing

    def ensure_indexes(self, name: str, executor: ThreadPoolExecutor | None = None) -> list[IndexSpec]:
        """
        Create every source index missing on the target.

        Args:
            name: Collection name
            executor: Pool to run the creations on (a private pool when None)

        Returns:
            Specs of the indexes that were created
        """
        missing = self.missing_indexes(name)
        if not missing:
            return []

        target_ref = CollectionRef(self.target_db, name)

        def create(spec: IndexSpec) -> IndexSpec:
            self.target.create_index(target_ref, spec)
            INDEXES_CREATED.labels(collection=name).inc()
            logger.info(f"Created index on {target_ref}: {spec.describe()}")
            return spec

        if executor is None:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(missing))) as pool:
                return list(pool.map(create, missing))

        return [future.result() for future in [executor.submit(create, s) for s in missing]]

    def reconcile_collection(self, name: str) -> SchemaResult:
        """
        Align one collection.

        Raises:
            SchemaReconciliationFailed: collection or index creation failed
            StoreUnavailable: a store could not be reached
        """
        with trace_operation(
            "docsync.schema.reconcile_collection",
            kind=trace.SpanKind.INTERNAL,
            collection=name,
        ):
            try:
                created = self.ensure_collection(name)
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    indexes = self.ensure_indexes(name, executor=pool)
            except (StoreUnavailable, SchemaReconciliationFailed):
                raise
            except Exception as e:
                raise SchemaReconciliationFailed(name, e) from e

        return SchemaResult(collection=name, created_collection=created, created_indexes=indexes)

    def reconcile(
        self, names: Iterable[str]
    ) -> dict[str, SchemaResult | SchemaReconciliationFailed]:
        """
        Align every collection concurrently.

        Per-collection failures are returned in place of a result so the
        caller can skip those collections; store availability errors
        propagate.

        Args:
            names: Collection names to reconcile

        Returns:
            Mapping of collection name to its SchemaResult or failure
        """
        names = list(names)
        outcomes: dict[str, SchemaResult | SchemaReconciliationFailed] = {}
        if not names:
            return outcomes

        with trace_operation(
            "docsync.schema.reconcile",
            kind=trace.SpanKind.INTERNAL,
            collection_count=len(names),
        ):
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(names))) as executor:
                future_to_name = {
                    executor.submit(self.reconcile_collection, name): name for name in names
                }

                for future in as_completed(future_to_name):
                    name = future_to_name[future]
                    try:
                        result = future.result()
                    except SchemaReconciliationFailed as e:
                        logger.error(f"Schema reconciliation failed for '{name}': {e.cause}")
                        result = e

                    outcomes[name] = result

        return {name: outcomes[name] for name in names}
