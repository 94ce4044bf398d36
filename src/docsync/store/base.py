"""
Document store interface used by the sync engine.

The engine never executes queries itself. Everything it needs from a
database (ordered fingerprints, metadata, bulk reads and writes) goes
through a DocumentStore implementation.
"""

from abc import ABC, abstractmethod
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any

from docsync.diff import KeyFingerprint
from docsync.errors import StoreUnavailable, unavailable_error_for

PRIMARY_INDEX_TYPE = "primary"


@dataclass(frozen=True)
class CollectionRef:
    """A collection inside a named database."""

    database: str
    name: str

    def __str__(self) -> str:
        return f"{self.database}.{self.name}"


@dataclass(frozen=True)
class CollectionProperties:
    """Collection settings replicated when the target collection is created."""

    wait_for_sync: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"waitForSync": self.wait_for_sync}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CollectionProperties":
        data = data or {}
        return cls(wait_for_sync=bool(data.get("waitForSync", data.get("wait_for_sync", False))))


@dataclass(frozen=True)
class IndexSpec:
    """
    Structural description of a secondary index.

    Two specs are the same index when type, field list (in order) and all
    flags are equal. Index names play no part in the comparison.
    """

    type: str
    fields: tuple[str, ...]
    unique: bool = False
    sparse: bool = False
    deduplicate: bool = False
    name: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Accept any sequence of field names but store an ordered tuple
        object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def is_primary(self) -> bool:
        return self.type == PRIMARY_INDEX_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "fields": list(self.fields),
            "unique": self.unique,
            "sparse": self.sparse,
            "deduplicate": self.deduplicate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexSpec":
        return cls(
            type=data["type"],
            fields=tuple(data.get("fields", ())),
            unique=bool(data.get("unique", False)),
            sparse=bool(data.get("sparse", False)),
            deduplicate=bool(data.get("deduplicate", False)),
            name=data.get("name"),
        )

    def describe(self) -> str:
        return f"{self.type} - {','.join(self.fields)}"


class DocumentStore(ABC):
    """
    Abstract document store.

    A store is bound to one server and plays either the "source" or the
    "target" role; the role decides which availability error it raises.
    Keys handed to and returned from the bulk operations are record keys
    (the "_key" field of each record).
    """

    KEY_FIELD = "_key"

    def __init__(self, role: str):
        self.role = role

    @property
    def unavailable_error(self) -> type[StoreUnavailable]:
        return unavailable_error_for(self.role)

    # ----- Databases -----

    @abstractmethod
    def list_databases(self) -> list[str]:
        """List database names on the server."""

    def database_exists(self, database: str) -> bool:
        return database in self.list_databases()

    @abstractmethod
    def create_database(self, database: str) -> None:
        """Create an empty database."""

    # ----- Collections and indexes -----

    @abstractmethod
    def list_collections(self, database: str) -> list[str]:
        """List collection names in a database."""

    def collection_exists(self, ref: CollectionRef) -> bool:
        return ref.name in self.list_collections(ref.database)

    @abstractmethod
    def create_collection(self, ref: CollectionRef, properties: CollectionProperties) -> None:
        """Create a collection with the given properties."""

    @abstractmethod
    def collection_properties(self, ref: CollectionRef) -> CollectionProperties:
        """Return the replicable properties of a collection."""

    @abstractmethod
    def indexes(self, ref: CollectionRef) -> list[IndexSpec]:
        """Return all index specs of a collection, the primary index included."""

    @abstractmethod
    def create_index(self, ref: CollectionRef, spec: IndexSpec) -> None:
        """Create a secondary index."""

    # ----- Data -----

    @abstractmethod
    def count(self, ref: CollectionRef) -> int:
        """Total number of records in a collection."""

    @abstractmethod
    def fingerprints(self, ref: CollectionRef) -> Generator[KeyFingerprint, None, None]:
        """
        Lazily yield (key, content hash) for every record, ascending by key.

        The hash excludes volatile revision metadata so that identical
        content on both sides produces identical hashes.
        Implementations are generators so callers can close them early.
        """

    @abstractmethod
    def bulk_fetch(self, ref: CollectionRef, keys: list[Any]) -> list[dict[str, Any]]:
        """Fetch full records for the given keys; missing keys are skipped."""

    @abstractmethod
    def bulk_insert(self, ref: CollectionRef, records: list[dict[str, Any]]) -> int:
        """Insert new records, returning the number written."""

    @abstractmethod
    def bulk_replace(self, ref: CollectionRef, records: list[dict[str, Any]]) -> int:
        """Replace existing records by key, returning the number written."""

    @abstractmethod
    def bulk_delete(self, ref: CollectionRef, keys: list[Any]) -> int:
        """Delete records by key, returning the number removed."""

    def close(self) -> None:
        """Release connections held by the store."""

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
