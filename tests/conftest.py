"""
Pytest configuration and fixtures for docsync tests.
Provides in-memory stores pre-loaded with source and target collections.
"""

import os

import pytest

from docsync.config import SyncSettings
from docsync.store import CollectionProperties, IndexSpec, InMemoryDocumentStore

SOURCE_DB = "shop"
TARGET_DB = "shop_copy"


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def clean_sync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("DOCSYNC_") or name in ("OTLP_ENDPOINT", "TRACE_CONSOLE"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fast_settings() -> SyncSettings:
    """Small batches and a short status interval so tests exercise chunking quickly."""
    return SyncSettings(batch_size=2, write_concurrency=2, status_interval_ms=10)


@pytest.fixture
def source_store() -> InMemoryDocumentStore:
    """Source store holding a `users` collection with a hash index on email."""
    store = InMemoryDocumentStore(role="source", name="source")
    store.add_collection(
        SOURCE_DB,
        "users",
        records=[
            {"_key": "a", "_rev": "1", "name": "Ann", "email": "ann@example.com"},
            {"_key": "b", "_rev": "1", "name": "Bob", "email": "bob@example.com"},
            {"_key": "c", "_rev": "1", "name": "Cid", "email": "cid@example.com"},
        ],
        properties=CollectionProperties(wait_for_sync=True),
        indexes=[IndexSpec(type="hash", fields=("email",), unique=True)],
    )
    return store


@pytest.fixture
def target_store() -> InMemoryDocumentStore:
    """Empty target store."""
    return InMemoryDocumentStore(role="target", name="target")
