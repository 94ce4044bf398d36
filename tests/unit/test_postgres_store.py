"""
Unit tests for the PostgreSQL document store

Tests verify:
- Pool creation and availability errors
- Transaction handling of pooled connections
- Metadata queries and index DDL
- Fingerprint streaming through a named cursor
- Bulk writes

All tests mock psycopg2's ThreadedConnectionPool; no database is needed.
"""

import json
import threading
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.pool import PoolError

from docsync.apply import BatchDispatcher
from docsync.config import ConnectionConfig, SyncSettings
from docsync.diff import ChangeSet, KeyFingerprint
from docsync.errors import SourceUnavailable, TargetUnavailable
from docsync.store import (
    CollectionProperties,
    CollectionRef,
    IndexSpec,
    InMemoryDocumentStore,
    PostgresDocumentStore,
)
from docsync.store.postgres import MAX_IDENTIFIER_LENGTH, _parse_comment, index_name

REF = CollectionRef("shop", "users")


@pytest.fixture
def cursor():
    cur = MagicMock()
    cur.__enter__.return_value = cur
    cur.rowcount = 0
    return cur


@pytest.fixture
def connection(cursor):
    conn = MagicMock()
    conn.closed = 0
    conn.cursor.return_value = cursor
    return conn


@pytest.fixture
def pool_cls(connection):
    with patch('docsync.store.postgres.ThreadedConnectionPool') as mock_cls:
        mock_cls.return_value.getconn.return_value = connection
        yield mock_cls


@pytest.fixture
def store(pool_cls):
    return PostgresDocumentStore("target", host="db", port=5433, user="u", password="p")


# ============================================================================
# Test helpers
# ============================================================================

class TestIndexName:
    """Tests for deterministic index naming"""

    def test_same_spec_same_name(self):
        spec = IndexSpec(type="hash", fields=("email",), unique=True)

        assert index_name("users", spec) == index_name("users", IndexSpec("hash", ["email"], unique=True))

    def test_different_spec_different_name(self):
        a = IndexSpec(type="hash", fields=("email",))
        b = IndexSpec(type="hash", fields=("email",), sparse=True)

        assert index_name("users", a) != index_name("users", b)

    def test_long_table_name_truncated(self):
        name = index_name("t" * 100, IndexSpec(type="hash", fields=("a",)))

        assert len(name) <= MAX_IDENTIFIER_LENGTH


@pytest.mark.parametrize("comment,expected", [
    (None, {}),
    ("", {}),
    ("not json", {}),
    ("[1, 2]", {}),
    ('{"waitForSync": true}', {"waitForSync": True}),
])
def test_parse_comment(comment, expected):
    assert _parse_comment(comment) == expected


# ============================================================================
# Test connections
# ============================================================================

class TestConnections:
    """Tests for pooling and availability errors"""

    def test_from_config_sizes_pool_for_writers(self):
        settings = SyncSettings(write_concurrency=16)

        store = PostgresDocumentStore.from_config(ConnectionConfig(host="h", port=1), "source", settings)

        assert store.max_connections == 18
        assert store.endpoint == "h:1"
        assert store.role == "source"

    def test_pool_opened_once_per_database(self, store, pool_cls, cursor):
        cursor.fetchall.return_value = []

        store.list_databases()
        store.list_databases()

        pool_cls.assert_called_once()
        kwargs = pool_cls.call_args.kwargs
        assert kwargs["dbname"] == "postgres"
        assert kwargs["host"] == "db"
        assert kwargs["port"] == 5433

    def test_authentication_failure_not_retried(self, pool_cls):
        pool_cls.side_effect = psycopg2.OperationalError("password authentication failed for user")
        store = PostgresDocumentStore("source")

        with pytest.raises(SourceUnavailable, match="cannot connect"):
            store.list_databases()

        pool_cls.assert_called_once()

    def test_transient_failure_retried(self, pool_cls, connection, cursor):
        cursor.fetchall.return_value = [("shop",)]
        pool = MagicMock()
        pool.getconn.return_value = connection
        pool_cls.side_effect = [psycopg2.OperationalError("could not connect to server"), pool]
        store = PostgresDocumentStore("target", connect_retries=2)

        with patch('utils.retry.time.sleep') as mock_sleep:
            assert store.list_databases() == ["shop"]

        mock_sleep.assert_called_once()

    def test_commit_on_success(self, store, connection, cursor, pool_cls):
        cursor.fetchone.return_value = (3,)

        assert store.count(REF) == 3

        connection.commit.assert_called_once()
        pool_cls.return_value.putconn.assert_called_once_with(connection, close=False)

    def test_rollback_on_error(self, store, connection, cursor):
        cursor.execute.side_effect = psycopg2.ProgrammingError("relation \"users\" does not exist")

        with pytest.raises(psycopg2.Error):
            store.count(REF)

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()

    def test_broken_connection_is_discarded(self, store, connection, cursor, pool_cls):
        cursor.execute.side_effect = psycopg2.InterfaceError("connection already closed")

        with pytest.raises(TargetUnavailable):
            store.count(REF)

        pool_cls.return_value.putconn.assert_called_once_with(connection, close=True)

    def test_dropped_connection_is_unavailable(self, store, connection, cursor, pool_cls):
        """Test the server closing the connection mid-statement ends with TargetUnavailable"""
        def drop(*args, **kwargs):
            connection.closed = 2
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        cursor.execute.side_effect = drop

        with pytest.raises(TargetUnavailable, match="lost connection"):
            store.count(REF)

        connection.rollback.assert_not_called()
        pool_cls.return_value.putconn.assert_called_once_with(connection, close=True)

    def test_operational_error_on_live_connection_propagates(self, store, connection, cursor):
        cursor.execute.side_effect = psycopg2.OperationalError("canceling statement due to statement timeout")

        with pytest.raises(psycopg2.OperationalError):
            store.count(REF)

        connection.rollback.assert_called_once()

    def test_dropped_connection_during_bulk_write_is_not_a_chunk_failure(self, store, connection, cursor):
        """Test a dispatcher surfaces the lost connection instead of BulkOperationFailed"""
        store._properties[REF] = CollectionProperties(wait_for_sync=True)

        def drop(*args, **kwargs):
            connection.closed = 2
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        cursor.execute.side_effect = drop

        source = InMemoryDocumentStore(role="source")
        source.add_collection("src", "users")
        dispatcher = BatchDispatcher(source, store, CollectionRef("src", "users"), REF)

        with pytest.raises(TargetUnavailable):
            dispatcher.apply(ChangeSet(deletes=["a", "b"]))

    def test_slow_connect_does_not_block_other_databases(self, pool_cls, connection, cursor):
        cursor.fetchall.return_value = [("shop",)]
        cursor.fetchone.return_value = (0,)
        connecting = threading.Event()
        release = threading.Event()
        pool = MagicMock()
        pool.getconn.return_value = connection

        def open_pool(*args, **kwargs):
            if kwargs["dbname"] == "slow":
                connecting.set()
                release.wait(5)
            return pool
        pool_cls.side_effect = open_pool
        store = PostgresDocumentStore("target")

        worker = threading.Thread(target=store.count, args=(CollectionRef("slow", "users"),))
        worker.start()
        try:
            assert connecting.wait(5)
            assert store.list_databases() == ["shop"]
            assert worker.is_alive()
        finally:
            release.set()
            worker.join(5)

        assert not worker.is_alive()

    def test_close_closes_pools(self, store, cursor, pool_cls):
        cursor.fetchall.return_value = []
        store.list_databases()

        store.close()

        pool_cls.return_value.closeall.assert_called_once()

    def test_close_logs_pool_errors(self, store, cursor, pool_cls):
        cursor.fetchall.return_value = []
        store.list_databases()
        pool_cls.return_value.closeall.side_effect = PoolError("already closed")

        store.close()


# ============================================================================
# Test metadata
# ============================================================================

class TestMetadata:
    """Tests for database, collection and index metadata"""

    def test_list_databases(self, store, cursor):
        cursor.fetchall.return_value = [("postgres",), ("shop",)]

        assert store.list_databases() == ["postgres", "shop"]
        assert store.database_exists("shop")

    def test_create_database_uses_autocommit(self, store, connection, cursor):
        autocommit_values = []
        cursor.execute.side_effect = lambda *args: autocommit_values.append(connection.autocommit)

        store.create_database("shop_copy")

        assert autocommit_values == [True]
        assert "Identifier('shop_copy')" in repr(cursor.execute.call_args.args[0])

    def test_create_collection_stores_properties(self, store, cursor):
        store.create_collection(REF, CollectionProperties(wait_for_sync=True))

        statements = [repr(call.args[0]) for call in cursor.execute.call_args_list]
        assert "_key text PRIMARY KEY" in statements[0]
        assert json.dumps({"waitForSync": True}) in statements[1]
        # Cached, no query needed
        cursor.execute.reset_mock()
        assert store.collection_properties(REF).wait_for_sync is True
        cursor.execute.assert_not_called()

    def test_collection_properties_from_comment(self, store, cursor):
        cursor.fetchone.return_value = ('{"waitForSync": true}',)

        assert store.collection_properties(REF) == CollectionProperties(wait_for_sync=True)

    def test_collection_properties_missing_table(self, store, cursor):
        cursor.fetchone.return_value = None

        with pytest.raises(LookupError):
            store.collection_properties(REF)

    def test_indexes(self, store, cursor):
        spec = IndexSpec(type="hash", fields=("email",), unique=True)
        cursor.fetchall.return_value = [
            ("users_pkey", True, None),
            ("users_idx_abc", False, json.dumps(spec.to_dict())),
            ("manual_idx", False, None),
        ]

        indexes = store.indexes(REF)

        assert len(indexes) == 2
        assert indexes[0].is_primary
        assert indexes[0].fields == ("_key",)
        assert indexes[1] == spec
        assert indexes[1].name == "users_idx_abc"

    def test_create_hash_index(self, store, cursor):
        store.create_index(REF, IndexSpec(type="hash", fields=("email",)))

        ddl = repr(cursor.execute.call_args_list[0].args[0])
        assert "SQL('hash')" in ddl
        assert "Literal('email')" in ddl
        assert "UNIQUE" not in ddl

    def test_unique_hash_index_uses_btree(self, store, cursor):
        store.create_index(REF, IndexSpec(type="hash", fields=("email",), unique=True))

        ddl = repr(cursor.execute.call_args_list[0].args[0])
        assert "SQL('btree')" in ddl
        assert "SQL('UNIQUE ')" in ddl

    def test_sparse_index_is_partial(self, store, cursor):
        store.create_index(REF, IndexSpec(type="persistent", fields=("a", "b"), sparse=True))

        ddl = repr(cursor.execute.call_args_list[0].args[0])
        assert "WHERE" in ddl
        assert ddl.count("IS NOT NULL") == 2

    def test_index_spec_written_as_comment(self, store, cursor):
        spec = IndexSpec(type="persistent", fields=("a",))

        store.create_index(REF, spec)

        comment = repr(cursor.execute.call_args_list[1].args[0])
        assert "COMMENT ON INDEX" in comment
        assert index_name("users", spec) in comment

    def test_index_without_fields_rejected(self, store):
        with pytest.raises(ValueError):
            store.create_index(REF, IndexSpec(type="persistent", fields=()))


# ============================================================================
# Test data
# ============================================================================

class TestData:
    """Tests for fingerprints and bulk operations"""

    def test_fingerprints_stream_from_named_cursor(self, store, connection, cursor):
        cursor.__iter__.return_value = iter([("a", memoryview(b"\x01")), ("b", memoryview(b"\x02"))])

        fingerprints = list(store.fingerprints(REF))

        assert fingerprints == [KeyFingerprint("a", b"\x01"), KeyFingerprint("b", b"\x02")]
        assert "name" in connection.cursor.call_args.kwargs
        assert cursor.itersize == store.fetch_size
        query, params = cursor.execute.call_args.args
        assert 'COLLATE "C"' in repr(query)
        assert params == (["_rev"],)

    def test_fingerprints_are_lazy(self, store, pool_cls):
        generator = store.fingerprints(REF)

        pool_cls.assert_not_called()
        generator.close()

    def test_bulk_fetch(self, store, cursor):
        cursor.fetchall.return_value = [({"_key": "a"},)]

        assert store.bulk_fetch(REF, ["a", "b"]) == [{"_key": "a"}]
        assert cursor.execute.call_args.args[1] == (["a", "b"],)

    def test_empty_bulk_calls_skip_database(self, store, pool_cls):
        assert store.bulk_fetch(REF, []) == []
        assert store.bulk_insert(REF, []) == 0
        assert store.bulk_replace(REF, []) == 0
        assert store.bulk_delete(REF, []) == 0

        pool_cls.assert_not_called()

    def test_bulk_insert_stamps_revision(self, store, cursor):
        store._properties[REF] = CollectionProperties(wait_for_sync=True)
        cursor.rowcount = 1

        with patch('docsync.store.postgres.execute_values') as mock_execute_values:
            written = store.bulk_insert(REF, [{"_key": "a", "_rev": "old", "v": 1}])

        assert written == 1
        rows = mock_execute_values.call_args.args[2]
        key, doc = rows[0]
        assert key == "a"
        assert doc.adapted["_rev"] != "old"
        assert doc.adapted["v"] == 1
        cursor.execute.assert_not_called()

    def test_relaxed_commit_without_wait_for_sync(self, store, cursor):
        store._properties[REF] = CollectionProperties(wait_for_sync=False)
        cursor.rowcount = 2

        assert store.bulk_delete(REF, ["a", "b"]) == 2

        statements = [call.args[0] for call in cursor.execute.call_args_list]
        assert statements[0] == "SET LOCAL synchronous_commit TO off"

    def test_bulk_replace(self, store, cursor):
        store._properties[REF] = CollectionProperties(wait_for_sync=True)
        cursor.rowcount = 1

        with patch('docsync.store.postgres.execute_values') as mock_execute_values:
            assert store.bulk_replace(REF, [{"_key": "a"}]) == 1

        assert "UPDATE" in repr(mock_execute_values.call_args.args[1])
