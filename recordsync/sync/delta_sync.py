"""Delta synchronization of records noted as changed."""

import asyncio
from typing import Hashable

import structlog

from recordsync.exceptions import TRANSIENT_ERRORS
from recordsync.models.config import RetryConfig, SyncConfig
from recordsync.storage.base import SourceStore
from recordsync.sync.change_tracker import ChangeTracker
from recordsync.sync.guards import exclusive_pass
from recordsync.sync.models import SyncReport
from recordsync.sync.writer import RecordWriter
from recordsync.utils.retry import retry_with_config

log = structlog.stdlib.get_logger()


class DeltaSyncEngine:
    """Propagates only the records the change tracker has noted.

    Each pass snapshots the tracker, re-reads every distinct key from the
    source (never trusting what the notification carried), upserts it, and
    then drains the snapshot minus the keys that failed transiently. Those keys
    and keys noted during the pass stay pending for the next pass; keys the
    target rejected permanently are drained and listed only in the report.
    """

    def __init__(
        self,
        source: SourceStore,
        writer: RecordWriter,
        tracker: ChangeTracker,
        sync_config: SyncConfig,
        retry_config: RetryConfig,
    ):
        self._source = source
        self._writer = writer
        self._tracker = tracker
        self._key_field = sync_config.key_field
        self._max_concurrency = sync_config.max_concurrency
        self._retry_config = retry_config
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @property
    def tracker(self) -> ChangeTracker:
        return self._tracker

    async def sync_new_changes(self) -> SyncReport:
        """
        Sync every key pending in the tracker when the pass starts.

        Returns:
            SyncReport; an empty pending set yields an empty report without
            querying either store
        """
        async with exclusive_pass(self._lock, "delta sync"):
            report = SyncReport(mode="delta")
            entries = self._tracker.snapshot()

            if not entries:
                log.debug("delta_sync_no_changes")
                return report.finish()

            # Dedupe while keeping first-noted order
            keys = list(dict.fromkeys(entry.key for entry in entries))
            log.info("delta_sync_started", pending_entries=len(entries), unique_keys=len(keys))

            if self._max_concurrency == 1:
                for key in keys:
                    await self._sync_key(key, report)
            else:
                semaphore = asyncio.Semaphore(self._max_concurrency)

                async def bounded(key: Hashable) -> None:
                    async with semaphore:
                        await self._sync_key(key, report)

                await asyncio.gather(*(bounded(key) for key in keys))

            retry_later = set(report.retryable_keys)
            drained = self._tracker.drain(e for e in entries if e.key not in retry_later)

            report.finish()
            log.info(
                "delta_sync_completed",
                attempted=report.attempted,
                succeeded=report.succeeded,
                failed=report.failed,
                skipped=report.skipped,
                drained=drained,
                still_pending=len(self._tracker),
                duration_seconds=report.duration_seconds,
            )
            return report

    async def _sync_key(self, key: Hashable, report: SyncReport) -> None:
        try:
            record = await retry_with_config(
                lambda: self._source.find_one({self._key_field: key}),
                self._retry_config,
                description="find_one",
            )
        except TRANSIENT_ERRORS as e:
            report.attempted += 1
            report.record_failure(key, f"Failed to read record {key}: {e}")
            log.error("changed_record_read_failed", key=key, error=str(e))
            return

        if record is None:
            # Deletions are not propagated; the target only receives inserts and updates
            report.skipped += 1
            log.warning("changed_record_missing", key=key)
            return

        await self._writer.write_record(record, "delta", report)
