"""Store capabilities and the in-memory reference store."""

from recordsync.storage.base import Filter, Record, SourceStore, TargetStore
from recordsync.storage.memory import InMemoryStore

__all__ = [
    "Filter",
    "InMemoryStore",
    "Record",
    "SourceStore",
    "TargetStore",
]
