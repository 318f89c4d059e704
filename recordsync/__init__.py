"""Record synchronization between a read-only source store and a write-only target store."""

from recordsync.sync import (
    ChangeTracker,
    DeltaSyncEngine,
    FullSyncEngine,
    SyncScheduler,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeTracker",
    "DeltaSyncEngine",
    "FullSyncEngine",
    "SyncScheduler",
    "__version__",
]
