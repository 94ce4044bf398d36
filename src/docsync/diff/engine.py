"""
Merge-diff of two ordered fingerprint streams.

Both streams are read in lock-step, exactly like a sorted merge-join:
keys only on the source side become creates, keys only on the target
side become deletes and keys on both sides with different content hashes
become updates. Only the current head of each stream is held in memory.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from docsync.errors import UnorderedStream

from .keys import EXHAUSTED, Key, Ordering, compare_keys, is_exhausted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyFingerprint:
    """Key and opaque content digest of one record."""

    key: Any
    hash: bytes | str


@dataclass
class ChangeSet:
    """Keys classified by the change needed to make the target match the source."""

    creates: list[Any] = field(default_factory=list)
    updates: list[Any] = field(default_factory=list)
    deletes: list[Any] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Total number of keys across all buckets."""
        return len(self.creates) + len(self.updates) + len(self.deletes)

    def is_empty(self) -> bool:
        """True when the target already matches the source."""
        return self.total == 0

    def to_dict(self) -> dict[str, int]:
        """Bucket sizes for logging and reports."""
        return {
            "creates": len(self.creates),
            "updates": len(self.updates),
            "deletes": len(self.deletes),
        }


class FingerprintCursor:
    """
    Pull-based head over a fingerprint stream.

    Exposes the current key and hash; once the stream is consumed the key
    becomes EXHAUSTED and further advances are no-ops. Keys are checked to
    be strictly ascending as they are read.
    """

    def __init__(self, stream: Iterable[KeyFingerprint], side: str):
        self._iterator: Iterator[KeyFingerprint] = iter(stream)
        self.side = side
        self.key: Key = None
        self.hash: bytes | str | None = None
        self.position = 0
        self.advance()

    @property
    def exhausted(self) -> bool:
        return is_exhausted(self.key)

    def advance(self) -> None:
        """Move to the next fingerprint, or to EXHAUSTED at end of stream."""
        if is_exhausted(self.key):
            return

        previous = self.key if self.position else None
        fingerprint = next(self._iterator, None)

        if fingerprint is None:
            self.key = EXHAUSTED
            self.hash = None
            return

        if self.position and compare_keys(previous, fingerprint.key) is not Ordering.LESS:
            raise UnorderedStream(self.side, previous, fingerprint.key)

        self.key = fingerprint.key
        self.hash = fingerprint.hash
        self.position += 1


def merge_diff(
    source: Iterable[KeyFingerprint],
    target: Iterable[KeyFingerprint],
    on_source_advance: Callable[[], None] | None = None,
) -> ChangeSet:
    """
    Classify every key of two ascending fingerprint streams.

    Args:
        source: Source fingerprints, strictly ascending by key
        target: Target fingerprints, strictly ascending by key
        on_source_advance: Called once per source record consumed, used for
            scan progress (target-only advances are not counted)

    Returns:
        ChangeSet with creates, updates and deletes in ascending key order

    Raises:
        IncomparableKeys: If a source and target key cannot be ordered
        UnorderedStream: If either stream is not strictly ascending
    """
    changes = ChangeSet()
    src = FingerprintCursor(source, "source")
    tgt = FingerprintCursor(target, "target")

    def advance_source() -> None:
        src.advance()
        if on_source_advance is not None:
            on_source_advance()

    # Termination is checked before comparing, so two exhausted
    # sentinels are never compared.
    while not (src.exhausted and tgt.exhausted):
        cmp = compare_keys(src.key, tgt.key)

        if cmp is Ordering.EQUAL:
            if src.hash != tgt.hash:
                changes.updates.append(src.key)
            advance_source()
            tgt.advance()
        elif cmp is Ordering.LESS:
            changes.creates.append(src.key)
            advance_source()
        else:
            changes.deletes.append(tgt.key)
            tgt.advance()

    logger.debug(
        f"Merge-diff complete: {src.position} source, {tgt.position} target fingerprints "
        f"-> {changes.to_dict()}"
    )

    return changes
