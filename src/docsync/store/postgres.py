"""
PostgreSQL document store.

Each collection is a table in the `public` schema of a database:

    CREATE TABLE <collection> (_key text PRIMARY KEY, doc jsonb NOT NULL)

`doc` holds the full record, `_key` and `_rev` included. Content
fingerprints are computed server-side over `doc` minus the volatile
fields, so the diff streams 64-byte digests instead of records.
Collection properties are kept as a JSON comment on the table; secondary
indexes are expression indexes over `doc ->> field` carrying their
structural description as a JSON comment.
"""

import hashlib
import json
import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extensions
from psycopg2 import sql
from psycopg2.extras import Json, execute_values
from psycopg2.pool import PoolError, ThreadedConnectionPool

from docsync.config import DEFAULT_PORT, VOLATILE_FIELDS, ConnectionConfig, SyncSettings
from docsync.diff import KeyFingerprint
from utils.retry import retry_database_operation

from .base import (
    PRIMARY_INDEX_TYPE,
    CollectionProperties,
    CollectionRef,
    DocumentStore,
    IndexSpec,
)

logger = logging.getLogger(__name__)

SCHEMA = "public"
MAINTENANCE_DATABASE = "postgres"

# Postgres truncates identifiers beyond this length
MAX_IDENTIFIER_LENGTH = 63


def index_name(table: str, spec: IndexSpec) -> str:
    """Deterministic index name derived from the structural spec."""
    digest = hashlib.sha1(
        json.dumps(spec.to_dict(), sort_keys=True).encode("utf-8")
    ).hexdigest()[:12]
    prefix = table[: MAX_IDENTIFIER_LENGTH - len(digest) - len("_idx_")]
    return f"{prefix}_idx_{digest}"


def _new_revision() -> str:
    return uuid.uuid4().hex[:12]


class PostgresDocumentStore(DocumentStore):
    """
    DocumentStore backed by PostgreSQL jsonb tables.

    One connection pool is opened lazily per database. Pools never hand out
    more than `max_connections` connections; callers beyond that block
    until a connection is returned.
    """

    def __init__(
        self,
        role: str,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        user: str = "postgres",
        password: str = "",
        max_connections: int = 10,
        connect_timeout: int = 10,
        connect_retries: int = 3,
        fetch_size: int = 2000,
        volatile_fields: tuple[str, ...] = VOLATILE_FIELDS,
    ):
        """
        Initialize the store

        Args:
            role: "source" or "target"; selects the availability error raised
            host: Server host name
            port: Server port
            user: Login role
            password: Login password
            max_connections: Connection cap per database
            connect_timeout: Seconds before a connection attempt is abandoned
            connect_retries: Retries for transient connection failures
            fetch_size: Rows per round trip when streaming fingerprints
            volatile_fields: Record fields excluded from fingerprints
        """
        super().__init__(role)
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.max_connections = max_connections
        self.connect_timeout = connect_timeout
        self.connect_retries = connect_retries
        self.fetch_size = fetch_size
        self.volatile_fields = tuple(volatile_fields)

        self._lock = threading.Lock()
        self._pools: dict[str, ThreadedConnectionPool] = {}
        self._slots: dict[str, threading.BoundedSemaphore] = {}
        self._opening: dict[str, threading.Lock] = {}
        self._properties: dict[CollectionRef, CollectionProperties] = {}

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        role: str,
        settings: SyncSettings | None = None,
    ) -> "PostgresDocumentStore":
        """
        Build a store for one side of a sync.

        The pool is sized so every write worker plus the two fingerprint
        cursors can hold a connection at once.
        """
        settings = settings or SyncSettings()
        return cls(
            role,
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            max_connections=max(10, settings.write_concurrency + 2),
            volatile_fields=settings.volatile_fields,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"PostgresDocumentStore(role={self.role!r}, endpoint={self.endpoint!r})"

    # ----- Connections -----

    def _open_pool(self, database: str) -> ThreadedConnectionPool:
        @retry_database_operation(max_retries=self.connect_retries, base_delay=1.0)
        def connect() -> ThreadedConnectionPool:
            return ThreadedConnectionPool(
                1,
                self.max_connections,
                host=self.host,
                port=self.port,
                dbname=database,
                user=self.user,
                password=self.password,
                connect_timeout=self.connect_timeout,
                application_name="docsync",
            )

        try:
            pool = connect()
        except psycopg2.OperationalError as e:
            raise self.unavailable_error(
                f"cannot connect to {self.endpoint}/{database}: {str(e).strip()}",
                cause=e,
            ) from e

        logger.debug(f"Opened {self.role} connection pool for {self.endpoint}/{database}")
        return pool

    def _pool(self, database: str) -> tuple[ThreadedConnectionPool, threading.BoundedSemaphore]:
        with self._lock:
            if database in self._pools:
                return self._pools[database], self._slots[database]
            opening = self._opening.setdefault(database, threading.Lock())

        # Connecting retries with backoff; only callers of this database wait
        with opening:
            with self._lock:
                if database in self._pools:
                    return self._pools[database], self._slots[database]

            pool = self._open_pool(database)
            slots = threading.BoundedSemaphore(self.max_connections)
            with self._lock:
                self._pools[database] = pool
                self._slots[database] = slots
            return pool, slots

    @contextmanager
    def _connection(
        self, database: str, autocommit: bool = False
    ) -> Iterator[psycopg2.extensions.connection]:
        """
        Borrow a pooled connection, committing on success.

        Args:
            database: Database to connect to
            autocommit: Run without a transaction (required for CREATE DATABASE)
        """
        pool, slots = self._pool(database)

        with slots:
            try:
                conn = pool.getconn()
            except psycopg2.OperationalError as e:
                raise self.unavailable_error(
                    f"lost connection to {self.endpoint}/{database}: {str(e).strip()}",
                    cause=e,
                ) from e

            broken = False
            conn.autocommit = autocommit
            try:
                yield conn
                if not autocommit:
                    conn.commit()
            except psycopg2.InterfaceError as e:
                broken = True
                raise self.unavailable_error(
                    f"connection to {self.endpoint}/{database} closed: {e}", cause=e
                ) from e
            except psycopg2.OperationalError as e:
                if not conn.closed:
                    conn.rollback()
                    raise
                # The server dropped the connection mid-statement
                broken = True
                raise self.unavailable_error(
                    f"lost connection to {self.endpoint}/{database}: {str(e).strip()}",
                    cause=e,
                ) from e
            except BaseException:
                if not conn.closed:
                    conn.rollback()
                raise
            finally:
                if autocommit and not conn.closed:
                    conn.autocommit = False
                pool.putconn(conn, close=broken or bool(conn.closed))

    @staticmethod
    def _table(ref: CollectionRef) -> sql.Identifier:
        return sql.Identifier(SCHEMA, ref.name)

    # ----- Databases -----

    def list_databases(self) -> list[str]:
        with self._connection(MAINTENANCE_DATABASE) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT datname FROM pg_database "
                    "WHERE NOT datistemplate AND datallowconn ORDER BY datname"
                )
                return [row[0] for row in cur.fetchall()]

    def create_database(self, database: str) -> None:
        with self._connection(MAINTENANCE_DATABASE, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(database)))
        logger.info(f"Created database '{database}' on {self.endpoint}")

    # ----- Collections and indexes -----

    def list_collections(self, database: str) -> list[str]:
        with self._connection(database) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT table_name
                    FROM information_schema.columns
                    WHERE table_schema = %s AND column_name IN ('_key', 'doc')
                    GROUP BY table_name
                    HAVING count(*) = 2
                    ORDER BY table_name
                    """,
                    (SCHEMA,),
                )
                return [row[0] for row in cur.fetchall()]

    def create_collection(self, ref: CollectionRef, properties: CollectionProperties) -> None:
        table = self._table(ref)
        with self._connection(ref.database) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL(
                        "CREATE TABLE {} (_key text PRIMARY KEY, doc jsonb NOT NULL)"
                    ).format(table)
                )
                cur.execute(
                    sql.SQL("COMMENT ON TABLE {} IS {}").format(
                        table, sql.Literal(json.dumps(properties.to_dict()))
                    )
                )

        with self._lock:
            self._properties[ref] = properties

    def collection_properties(self, ref: CollectionRef) -> CollectionProperties:
        with self._lock:
            cached = self._properties.get(ref)
        if cached is not None:
            return cached

        with self._connection(ref.database) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT obj_description(c.oid, 'pg_class')
                    FROM pg_class c
                    JOIN pg_namespace n ON n.oid = c.relnamespace
                    WHERE n.nspname = %s AND c.relname = %s AND c.relkind = 'r'
                    """,
                    (SCHEMA, ref.name),
                )
                row = cur.fetchone()

        if row is None:
            raise LookupError(f"Collection {ref} does not exist")

        properties = CollectionProperties.from_dict(_parse_comment(row[0]))
        with self._lock:
            self._properties[ref] = properties
        return properties

    def indexes(self, ref: CollectionRef) -> list[IndexSpec]:
        with self._connection(ref.database) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT i.relname, ix.indisprimary, obj_description(i.oid, 'pg_class')
                    FROM pg_index ix
                    JOIN pg_class i ON i.oid = ix.indexrelid
                    JOIN pg_class t ON t.oid = ix.indrelid
                    JOIN pg_namespace n ON n.oid = t.relnamespace
                    WHERE n.nspname = %s AND t.relname = %s
                    ORDER BY ix.indisprimary DESC, i.relname
                    """,
                    (SCHEMA, ref.name),
                )
                rows = cur.fetchall()

        specs = []
        for name, is_primary, comment in rows:
            if is_primary:
                specs.append(
                    IndexSpec(type=PRIMARY_INDEX_TYPE, fields=(self.KEY_FIELD,), unique=True, name=name)
                )
                continue

            described = _parse_comment(comment)
            if "type" not in described:
                logger.debug(f"Ignoring index {name} on {ref}: not managed by docsync")
                continue
            specs.append(IndexSpec.from_dict({**described, "name": name}))

        return specs

    def create_index(self, ref: CollectionRef, spec: IndexSpec) -> None:
        if not spec.fields:
            raise ValueError(f"Index on {ref} must cover at least one field")

        name = sql.Identifier(index_name(ref.name, spec))
        # Postgres hash indexes are single-column and never unique
        single_hash = spec.type == "hash" and not spec.unique and len(spec.fields) == 1
        method = "hash" if single_hash else "btree"
        expressions = sql.SQL(", ").join(
            [sql.SQL("(doc ->> {})").format(sql.Literal(f)) for f in spec.fields]
        )

        statement = sql.SQL(
            "CREATE {unique}INDEX IF NOT EXISTS {name} ON {table} USING {method} ({exprs})"
        ).format(
            unique=sql.SQL("UNIQUE " if spec.unique else ""),
            name=name,
            table=self._table(ref),
            method=sql.SQL(method),
            exprs=expressions,
        )
        if spec.sparse:
            statement += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
                [sql.SQL("(doc ->> {}) IS NOT NULL").format(sql.Literal(f)) for f in spec.fields]
            )

        with self._connection(ref.database) as conn:
            with conn.cursor() as cur:
                cur.execute(statement)
                cur.execute(
                    sql.SQL("COMMENT ON INDEX {} IS {}").format(
                        sql.Identifier(SCHEMA, index_name(ref.name, spec)),
                        sql.Literal(json.dumps(spec.to_dict())),
                    )
                )

    # ----- Data -----

    def count(self, ref: CollectionRef) -> int:
        with self._connection(ref.database) as conn:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("SELECT count(*) FROM {}").format(self._table(ref)))
                return cur.fetchone()[0]

    def fingerprints(self, ref: CollectionRef) -> Iterator[KeyFingerprint]:
        # Byte-order collation matches Python's ordering of str keys
        query = sql.SQL(
            "SELECT _key, sha512(convert_to((doc - %s::text[])::text, 'UTF8')) "
            'FROM {} ORDER BY _key COLLATE "C"'
        ).format(self._table(ref))

        with self._connection(ref.database) as conn:
            with conn.cursor(name=f"docsync_fp_{uuid.uuid4().hex}") as cur:
                cur.itersize = self.fetch_size
                cur.execute(query, (list(self.volatile_fields),))
                for key, digest in cur:
                    yield KeyFingerprint(key=key, hash=bytes(digest))

    def bulk_fetch(self, ref: CollectionRef, keys: list[Any]) -> list[dict[str, Any]]:
        if not keys:
            return []

        with self._connection(ref.database) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("SELECT doc FROM {} WHERE _key = ANY(%s)").format(self._table(ref)),
                    (list(keys),),
                )
                return [row[0] for row in cur.fetchall()]

    def _write_cursor(self, conn, relaxed: bool):
        cur = conn.cursor()
        if relaxed:
            cur.execute("SET LOCAL synchronous_commit TO off")
        return cur

    def _relaxed(self, ref: CollectionRef) -> bool:
        # Collections without waitForSync do not wait for the WAL flush
        return not self.collection_properties(ref).wait_for_sync

    def bulk_insert(self, ref: CollectionRef, records: list[dict[str, Any]]) -> int:
        if not records:
            return 0

        rows = [
            (record[self.KEY_FIELD], Json({**record, "_rev": _new_revision()}))
            for record in records
        ]
        relaxed = self._relaxed(ref)
        with self._connection(ref.database) as conn:
            with self._write_cursor(conn, relaxed) as cur:
                execute_values(
                    cur,
                    sql.SQL("INSERT INTO {} (_key, doc) VALUES %s").format(self._table(ref)),
                    rows,
                    page_size=len(rows),
                )
                return cur.rowcount

    def bulk_replace(self, ref: CollectionRef, records: list[dict[str, Any]]) -> int:
        if not records:
            return 0

        rows = [
            (record[self.KEY_FIELD], Json({**record, "_rev": _new_revision()}))
            for record in records
        ]
        relaxed = self._relaxed(ref)
        with self._connection(ref.database) as conn:
            with self._write_cursor(conn, relaxed) as cur:
                execute_values(
                    cur,
                    sql.SQL(
                        "UPDATE {} AS d SET doc = v.doc::jsonb "
                        "FROM (VALUES %s) AS v(_key, doc) WHERE d._key = v._key"
                    ).format(self._table(ref)),
                    rows,
                    page_size=len(rows),
                )
                return cur.rowcount

    def bulk_delete(self, ref: CollectionRef, keys: list[Any]) -> int:
        if not keys:
            return 0

        relaxed = self._relaxed(ref)
        with self._connection(ref.database) as conn:
            with self._write_cursor(conn, relaxed) as cur:
                cur.execute(
                    sql.SQL("DELETE FROM {} WHERE _key = ANY(%s)").format(self._table(ref)),
                    (list(keys),),
                )
                return cur.rowcount

    def close(self) -> None:
        with self._lock:
            pools = list(self._pools.items())
            self._pools.clear()
            self._slots.clear()

        for database, pool in pools:
            try:
                pool.closeall()
            except PoolError as e:
                logger.warning(f"Error closing pool for {database}: {e}")


def _parse_comment(comment: str | None) -> dict[str, Any]:
    if not comment:
        return {}
    try:
        parsed = json.loads(comment)
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}
