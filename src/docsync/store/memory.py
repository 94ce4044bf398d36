"""
In-process document store.

Implements the full DocumentStore contract over Python dictionaries. Used
by the test-suite and by callers that want to sync into or out of
application memory. Supports failure injection for exercising the error
paths of the engine.
"""

import copy
import hashlib
import json
import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from numbers import Number
from typing import Any

from docsync.config import VOLATILE_FIELDS
from docsync.diff import KeyFingerprint

from .base import (
    PRIMARY_INDEX_TYPE,
    CollectionProperties,
    CollectionRef,
    DocumentStore,
    IndexSpec,
)

logger = logging.getLogger(__name__)


def compute_fingerprint(
    record: dict[str, Any],
    volatile_fields: Iterable[str] = VOLATILE_FIELDS,
) -> bytes:
    """
    Compute the SHA-512 content digest of a record.

    Args:
        record: The record to fingerprint
        volatile_fields: Fields excluded from the digest (revision markers)

    Returns:
        Raw SHA-512 digest
    """
    exclude = set(volatile_fields)
    filtered = {k: v for k, v in record.items() if k not in exclude}
    json_str = json.dumps(filtered, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha512(json_str.encode("utf-8")).digest()


def _sort_key(key: Any) -> tuple:
    # Group numbers and strings so a mixed-type collection yields an
    # ordered stream per group instead of failing inside sorted().
    if isinstance(key, Number) and not isinstance(key, bool):
        return (0, key)
    if isinstance(key, str):
        return (1, key)
    return (2, repr(key))


@dataclass
class _Collection:
    properties: CollectionProperties
    records: dict[Any, dict[str, Any]] = field(default_factory=dict)
    indexes: list[IndexSpec] = field(default_factory=list)


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dictionary-backed document store."""

    def __init__(self, role: str = "source", name: str = "memory"):
        super().__init__(role)
        self.name = name
        self.available = True
        self._databases: dict[str, dict[str, _Collection]] = {}
        self._lock = threading.RLock()
        self._failures: dict[str, tuple[BaseException, int]] = {}
        self._calls: dict[str, int] = {}

    # ----- Test helpers -----

    def add_collection(
        self,
        database: str,
        name: str,
        records: Iterable[dict[str, Any]] = (),
        properties: CollectionProperties | None = None,
        indexes: Iterable[IndexSpec] = (),
    ) -> CollectionRef:
        """Create a collection and load records into it without revision stamping."""
        ref = CollectionRef(database, name)
        with self._lock:
            db = self._databases.setdefault(database, {})
            coll = _Collection(properties=properties or CollectionProperties())
            coll.indexes.append(IndexSpec(type=PRIMARY_INDEX_TYPE, fields=("_key",), unique=True))
            coll.indexes.extend(indexes)
            for record in records:
                coll.records[record[self.KEY_FIELD]] = copy.deepcopy(record)
            db[name] = coll
        return ref

    def records(self, ref: CollectionRef) -> dict[Any, dict[str, Any]]:
        """Snapshot of a collection's records keyed by record key."""
        with self._lock:
            return copy.deepcopy(self._collection(ref).records)

    def inject_failure(self, operation: str, exc: BaseException, after: int = 0) -> None:
        """Make `operation` raise `exc` once it has succeeded `after` times."""
        self._failures[operation] = (exc, after)
        self._calls[operation] = 0

    def call_count(self, operation: str) -> int:
        return self._calls.get(operation, 0)

    # ----- Internals -----

    def _check(self, operation: str) -> None:
        if not self.available:
            raise self.unavailable_error(f"{self.name} is offline")

        with self._lock:
            calls = self._calls.get(operation, 0)
            self._calls[operation] = calls + 1
            failure = self._failures.get(operation)

        if failure is not None and calls >= failure[1]:
            raise failure[0]

    def _collection(self, ref: CollectionRef) -> _Collection:
        try:
            return self._databases[ref.database][ref.name]
        except KeyError as e:
            raise LookupError(f"Collection {ref} does not exist") from e

    @staticmethod
    def _stamp(record: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(record)
        stored["_rev"] = uuid.uuid4().hex[:12]
        return stored

    # ----- Databases -----

    def list_databases(self) -> list[str]:
        self._check("list_databases")
        with self._lock:
            return sorted(self._databases)

    def create_database(self, database: str) -> None:
        self._check("create_database")
        with self._lock:
            if database in self._databases:
                raise ValueError(f"Database '{database}' already exists")
            self._databases[database] = {}

    # ----- Collections and indexes -----

    def list_collections(self, database: str) -> list[str]:
        self._check("list_collections")
        with self._lock:
            return sorted(self._databases.get(database, {}))

    def create_collection(self, ref: CollectionRef, properties: CollectionProperties) -> None:
        self._check("create_collection")
        with self._lock:
            db = self._databases.setdefault(ref.database, {})
            if ref.name in db:
                raise ValueError(f"Collection {ref} already exists")
            coll = _Collection(properties=properties)
            coll.indexes.append(IndexSpec(type=PRIMARY_INDEX_TYPE, fields=("_key",), unique=True))
            db[ref.name] = coll

    def collection_properties(self, ref: CollectionRef) -> CollectionProperties:
        self._check("collection_properties")
        with self._lock:
            return self._collection(ref).properties

    def indexes(self, ref: CollectionRef) -> list[IndexSpec]:
        self._check("indexes")
        with self._lock:
            return list(self._collection(ref).indexes)

    def create_index(self, ref: CollectionRef, spec: IndexSpec) -> None:
        self._check("create_index")
        with self._lock:
            self._collection(ref).indexes.append(spec)

    # ----- Data -----

    def count(self, ref: CollectionRef) -> int:
        self._check("count")
        with self._lock:
            return len(self._collection(ref).records)

    def fingerprints(self, ref: CollectionRef) -> Iterator[KeyFingerprint]:
        self._check("fingerprints")
        with self._lock:
            keys = sorted(self._collection(ref).records, key=_sort_key)

        for key in keys:
            with self._lock:
                record = self._collection(ref).records.get(key)
            if record is None:
                continue
            yield KeyFingerprint(key=key, hash=compute_fingerprint(record))

    def bulk_fetch(self, ref: CollectionRef, keys: list[Any]) -> list[dict[str, Any]]:
        self._check("bulk_fetch")
        with self._lock:
            records = self._collection(ref).records
            return [copy.deepcopy(records[k]) for k in keys if k in records]

    def bulk_insert(self, ref: CollectionRef, records: list[dict[str, Any]]) -> int:
        self._check("bulk_insert")
        with self._lock:
            stored = self._collection(ref).records
            duplicates = [r[self.KEY_FIELD] for r in records if r[self.KEY_FIELD] in stored]
            if duplicates:
                raise ValueError(f"Unique constraint violated for keys {duplicates}")
            for record in records:
                stored[record[self.KEY_FIELD]] = self._stamp(record)
        return len(records)

    def bulk_replace(self, ref: CollectionRef, records: list[dict[str, Any]]) -> int:
        self._check("bulk_replace")
        with self._lock:
            stored = self._collection(ref).records
            missing = [r[self.KEY_FIELD] for r in records if r[self.KEY_FIELD] not in stored]
            if missing:
                raise KeyError(f"Documents not found for keys {missing}")
            for record in records:
                stored[record[self.KEY_FIELD]] = self._stamp(record)
        return len(records)

    def bulk_delete(self, ref: CollectionRef, keys: list[Any]) -> int:
        self._check("bulk_delete")
        removed = 0
        with self._lock:
            stored = self._collection(ref).records
            for key in keys:
                if stored.pop(key, None) is not None:
                    removed += 1
        return removed
