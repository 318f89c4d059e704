"""Synchronization components: change tracking, full and delta sync, scheduling."""

from recordsync.sync.change_tracker import ChangeTracker
from recordsync.sync.delta_sync import DeltaSyncEngine
from recordsync.sync.events import EventDispatcher, LoggingObserver, RecordEvent
from recordsync.sync.full_sync import FullSyncEngine
from recordsync.sync.models import BatchCursor, ChangeEntry, SyncReport, SyncState
from recordsync.sync.scheduler import SchedulerState, SyncScheduler
from recordsync.sync.writer import RecordWriter

__all__ = [
    "BatchCursor",
    "ChangeEntry",
    "ChangeTracker",
    "DeltaSyncEngine",
    "EventDispatcher",
    "FullSyncEngine",
    "LoggingObserver",
    "RecordEvent",
    "RecordWriter",
    "SchedulerState",
    "SyncReport",
    "SyncScheduler",
    "SyncState",
]
