"""
Change detection between a source and a target collection.

Compares ordered (key, content hash) fingerprint streams in one pass and
classifies every key as a create, update or delete.
"""

from .engine import ChangeSet, FingerprintCursor, KeyFingerprint, merge_diff
from .keys import EXHAUSTED, Key, Ordering, compare_keys, is_exhausted

__all__ = [
    'ChangeSet',
    'FingerprintCursor',
    'KeyFingerprint',
    'merge_diff',
    'EXHAUSTED',
    'Key',
    'Ordering',
    'compare_keys',
    'is_exhausted',
]
