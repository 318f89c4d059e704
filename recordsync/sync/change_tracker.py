"""Tracks business keys changed in the source since the last delta sync."""

import itertools
import threading
from typing import Hashable, Iterable

import structlog

from recordsync.sync.models import ChangeEntry

log = structlog.stdlib.get_logger()


class ChangeTracker:
    """Pending set of changed business keys.

    Whatever mutates the source calls ``notify_changed``. A delta pass takes a
    ``snapshot``, syncs it, then ``drain``s exactly the entries it captured,
    so keys noted while the pass was running stay pending for the next one.
    A lock guards every operation because notifications may arrive from
    threads other than the one running the event loop.
    """

    def __init__(self) -> None:
        self._entries: list[ChangeEntry] = []
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def notify_changed(self, key: Hashable) -> ChangeEntry:
        """Note that the record with this business key changed in the source.

        The key is stored unconverted; the delta pass queries the source with
        this exact value.
        """
        if key is None or key == "":
            raise ValueError("key must be a non-empty business key")

        with self._lock:
            entry = ChangeEntry(sequence=next(self._sequence), key=key)
            self._entries.append(entry)
            pending = len(self._entries)

        log.debug("change_noted", key=entry.key, sequence=entry.sequence, pending=pending)
        return entry

    def notify_many(self, keys: Iterable[Hashable]) -> list[ChangeEntry]:
        return [self.notify_changed(key) for key in keys]

    def snapshot(self) -> list[ChangeEntry]:
        """Entries pending right now, in the order they were noted."""
        with self._lock:
            return list(self._entries)

    def drain(self, entries: Iterable[ChangeEntry]) -> int:
        """
        Remove exactly the given entries.

        Args:
            entries: Entries previously returned by snapshot()

        Returns:
            Number of entries removed
        """
        sequences = {entry.sequence for entry in entries}
        if not sequences:
            return 0

        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.sequence not in sequences]
            removed = before - len(self._entries)
            remaining = len(self._entries)

        log.debug("changes_drained", removed=removed, remaining=remaining)
        return removed

    def pending_keys(self) -> set[Hashable]:
        with self._lock:
            return {entry.key for entry in self._entries}

    def count_for(self, key: Hashable) -> int:
        with self._lock:
            return sum(1 for entry in self._entries if entry.key == key)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
