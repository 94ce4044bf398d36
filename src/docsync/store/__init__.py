"""
Document store backends.

DocumentStore is the seam between the sync engine and a database server.
PostgresDocumentStore talks to PostgreSQL over psycopg2;
InMemoryDocumentStore keeps everything in process.
"""

from .base import (
    PRIMARY_INDEX_TYPE,
    CollectionProperties,
    CollectionRef,
    DocumentStore,
    IndexSpec,
)
from .memory import InMemoryDocumentStore, compute_fingerprint
from .postgres import PostgresDocumentStore

__all__ = [
    'PRIMARY_INDEX_TYPE',
    'CollectionProperties',
    'CollectionRef',
    'DocumentStore',
    'IndexSpec',
    'InMemoryDocumentStore',
    'PostgresDocumentStore',
    'compute_fingerprint',
]
