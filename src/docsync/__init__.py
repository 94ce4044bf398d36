"""
docsync: make a target document database an exact replica of a source.

Components:
- diff: Ordered merge-diff of (key, content hash) fingerprint streams
- schema: Collection and index alignment ahead of the data sync
- apply: Chunked, concurrency-limited application of change sets
- progress: Live scan/sync progress sampling
- store: PostgreSQL and in-memory document stores
- report: Sync reports
- scheduler: Periodic syncs

Usage:
    from docsync.store import PostgresDocumentStore
    from docsync.sync import sync_collections
"""

__version__ = "1.0.0"
__all__ = [
    "apply",
    "cli",
    "config",
    "diff",
    "errors",
    "progress",
    "report",
    "scheduler",
    "schema",
    "store",
    "sync",
]
