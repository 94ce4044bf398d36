"""
Exception hierarchy for collection sync.

Errors scoped to one collection (incomparable keys, schema failures, bulk
failures) abort that collection only. Store availability errors abort the
whole run.
"""

from typing import Any


class SyncError(Exception):
    """Base exception for all sync errors."""

    pass


class IncomparableKeys(SyncError, TypeError):
    """Raised when two record keys cannot be ordered against each other."""

    def __init__(self, left: Any, right: Any):
        self.left = left
        self.right = right
        super().__init__(
            f"Uncomparable keys: {left!r} ({type(left).__name__}) <=> "
            f"{right!r} ({type(right).__name__})"
        )


class UnorderedStream(SyncError):
    """Raised when a fingerprint stream is not strictly ascending by key."""

    def __init__(self, side: str, previous: Any, current: Any):
        self.side = side
        self.previous = previous
        self.current = current
        super().__init__(
            f"{side} fingerprint stream out of order: {current!r} follows {previous!r}"
        )


class StoreUnavailable(SyncError):
    """Raised when a store cannot be reached or refuses authentication."""

    role = "store"

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(f"{self.role.capitalize()} unavailable: {message}")


class SourceUnavailable(StoreUnavailable):
    """The source store is unreachable."""

    role = "source"


class TargetUnavailable(StoreUnavailable):
    """The target store is unreachable."""

    role = "target"


class SchemaReconciliationFailed(SyncError):
    """Raised when the target collection or one of its indexes cannot be created."""

    def __init__(self, collection: str, cause: BaseException):
        self.collection = collection
        self.cause = cause
        super().__init__(f"Schema reconciliation failed for '{collection}': {cause}")


class BulkOperationFailed(SyncError):
    """Raised when a chunk-level create, update or delete fails."""

    def __init__(
        self,
        collection: str,
        operation: str,
        keys: list[Any],
        cause: BaseException,
    ):
        self.collection = collection
        self.operation = operation
        self.keys = keys
        self.cause = cause
        super().__init__(
            f"Bulk {operation} of {len(keys)} record(s) failed for '{collection}': {cause}"
        )


def unavailable_error_for(role: str) -> type[StoreUnavailable]:
    """Return the availability error class matching a store role."""
    if role == "source":
        return SourceUnavailable
    if role == "target":
        return TargetUnavailable
    return StoreUnavailable
