"""
Three-way comparison of record keys.

Keys are compared in their natural Python order. A stream that has no
more fingerprints reports the EXHAUSTED sentinel as its current key; the
sentinel sorts after every real key and is a distinct object, so it can
never collide with a real key value.
"""

from enum import IntEnum
from typing import Any, Union

from docsync.errors import IncomparableKeys


class Ordering(IntEnum):
    """Result of a three-way comparison."""

    LESS = -1
    EQUAL = 0
    GREATER = 1


class _Exhausted:
    """Sentinel type for a fully consumed fingerprint stream."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED = _Exhausted()

# A key is either a real, totally ordered value or the EXHAUSTED sentinel.
Key = Union[Any, _Exhausted]


def is_exhausted(key: Key) -> bool:
    """Check whether a key is the EXHAUSTED sentinel."""
    return key is EXHAUSTED


def _spaceship(a: Any, b: Any) -> Ordering:
    """Compare two real keys, refusing implicit coercion between types."""
    try:
        if a == b:
            return Ordering.EQUAL
        if a < b:
            return Ordering.LESS
        if a > b:
            return Ordering.GREATER
    except TypeError as e:
        raise IncomparableKeys(a, b) from e

    # Neither direction holds (e.g. NaN)
    raise IncomparableKeys(a, b)


def compare_keys(a: Key, b: Key) -> Ordering:
    """
    Three-way compare two keys.

    EXHAUSTED is greater than any real key. Comparing two EXHAUSTED
    sentinels returns EQUAL; callers must not depend on that result.

    Args:
        a: Left key
        b: Right key

    Returns:
        Ordering of a relative to b

    Raises:
        IncomparableKeys: If two real keys cannot be ordered
    """
    if is_exhausted(a):
        return Ordering.EQUAL if is_exhausted(b) else Ordering.GREATER
    if is_exhausted(b):
        return Ordering.LESS
    return _spaceship(a, b)
