"""
Unit tests for the in-memory document store

Tests verify:
- Fingerprint ordering and revision independence
- Bulk operation semantics
- Availability errors per role
- Failure injection
"""

import pytest

from docsync.errors import SourceUnavailable, TargetUnavailable
from docsync.store import (
    CollectionProperties,
    CollectionRef,
    IndexSpec,
    InMemoryDocumentStore,
    compute_fingerprint,
)


class TestComputeFingerprint:
    """Test record content digests"""

    def test_revision_is_ignored(self):
        """Test records differing only in _rev share a fingerprint"""
        a = {"_key": "a", "_rev": "1", "v": 1}
        b = {"_key": "a", "_rev": "2", "v": 1}

        assert compute_fingerprint(a) == compute_fingerprint(b)

    def test_content_change_changes_fingerprint(self):
        a = {"_key": "a", "v": 1}
        b = {"_key": "a", "v": 2}

        assert compute_fingerprint(a) != compute_fingerprint(b)

    def test_field_order_is_irrelevant(self):
        """Test canonical JSON makes field order irrelevant"""
        a = {"_key": "a", "x": 1, "y": 2}
        b = {"y": 2, "x": 1, "_key": "a"}

        assert compute_fingerprint(a) == compute_fingerprint(b)

    def test_digest_is_sha512(self):
        assert len(compute_fingerprint({"_key": "a"})) == 64


class TestInMemoryStoreData:
    """Test data operations"""

    def test_fingerprints_are_ascending(self):
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c", [{"_key": k} for k in ("c", "a", "b")])

        assert [fp.key for fp in store.fingerprints(ref)] == ["a", "b", "c"]

    def test_writes_stamp_a_new_revision(self):
        """Test bulk writes assign _rev without changing fingerprints"""
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c")
        record = {"_key": "a", "_rev": "source-rev", "v": 1}

        store.bulk_insert(ref, [record])

        stored = store.records(ref)["a"]
        assert stored["_rev"] != "source-rev"
        assert next(store.fingerprints(ref)).hash == compute_fingerprint(record)

    def test_insert_rejects_existing_key(self):
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c", [{"_key": "a"}])

        with pytest.raises(ValueError, match="Unique constraint"):
            store.bulk_insert(ref, [{"_key": "a"}])

    def test_replace_rejects_missing_key(self):
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c")

        with pytest.raises(KeyError):
            store.bulk_replace(ref, [{"_key": "a"}])

    def test_bulk_fetch_skips_missing_keys(self):
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c", [{"_key": "a"}, {"_key": "b"}])

        fetched = store.bulk_fetch(ref, ["a", "zz", "b"])

        assert [r["_key"] for r in fetched] == ["a", "b"]

    def test_bulk_delete_counts_removed_only(self):
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c", [{"_key": "a"}])

        assert store.bulk_delete(ref, ["a", "missing"]) == 1
        assert store.count(ref) == 0

    def test_fetched_records_are_copies(self):
        """Test callers cannot mutate stored records"""
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c", [{"_key": "a", "v": 1}])

        store.bulk_fetch(ref, ["a"])[0]["v"] = 99

        assert store.records(ref)["a"]["v"] == 1

    def test_missing_collection(self):
        store = InMemoryDocumentStore()

        with pytest.raises(LookupError):
            store.count(CollectionRef("db", "missing"))


class TestInMemoryStoreMetadata:
    """Test database, collection and index metadata"""

    def test_create_database(self):
        store = InMemoryDocumentStore()
        store.create_database("db")

        assert store.database_exists("db")
        with pytest.raises(ValueError):
            store.create_database("db")

    def test_collection_has_primary_index(self):
        store = InMemoryDocumentStore()
        ref = CollectionRef("db", "c")
        store.create_collection(ref, CollectionProperties(wait_for_sync=True))

        indexes = store.indexes(ref)

        assert len(indexes) == 1
        assert indexes[0].is_primary
        assert store.collection_properties(ref).wait_for_sync is True
        assert store.collection_exists(ref)

    def test_create_index(self):
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c")
        spec = IndexSpec(type="persistent", fields=("a", "b"))

        store.create_index(ref, spec)

        assert spec in store.indexes(ref)


class TestInMemoryStoreFailures:
    """Test availability errors and failure injection"""

    @pytest.mark.parametrize("role,error", [
        ("source", SourceUnavailable),
        ("target", TargetUnavailable),
    ])
    def test_offline_store_raises_role_error(self, role, error):
        store = InMemoryDocumentStore(role=role)
        store.available = False

        with pytest.raises(error):
            store.list_databases()

    def test_inject_failure_after_successes(self):
        """Test an injected failure fires only after the allowed calls"""
        store = InMemoryDocumentStore()
        ref = store.add_collection("db", "c")
        store.inject_failure("bulk_insert", RuntimeError("disk full"), after=1)

        store.bulk_insert(ref, [{"_key": "a"}])
        with pytest.raises(RuntimeError, match="disk full"):
            store.bulk_insert(ref, [{"_key": "b"}])

        assert store.call_count("bulk_insert") == 2
        assert store.count(ref) == 1
