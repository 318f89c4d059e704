"""Full synchronization of every source record into the target."""

import asyncio

import structlog

from recordsync.exceptions import TRANSIENT_ERRORS, ConfigurationError
from recordsync.models.config import RetryConfig, SyncConfig
from recordsync.storage.base import SourceStore
from recordsync.sync.guards import exclusive_pass
from recordsync.sync.models import BatchCursor, SyncReport
from recordsync.sync.writer import RecordWriter
from recordsync.utils.retry import retry_with_config

log = structlog.stdlib.get_logger()


class FullSyncEngine:
    """Copies the entire source into the target.

    Two modes share one postcondition: every record present in the source
    when the pass read it exists in the target with the values read.

    - ``sync_all_no_limit`` reads everything in one query.
    - ``sync_all_safely`` reads fixed-size pages. The record total is captured
      once before the first page; records added to the source mid-pass may be
      missed and will be picked up by delta syncs or the next full sync.

    Only one full sync may run per engine at a time.
    """

    def __init__(
        self,
        source: SourceStore,
        writer: RecordWriter,
        sync_config: SyncConfig,
        retry_config: RetryConfig,
    ):
        self._source = source
        self._writer = writer
        self._sync_config = sync_config
        self._retry_config = retry_config
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def sync_all_no_limit(self) -> SyncReport:
        """
        Read every source record in a single query and upsert each one.

        Returns:
            SyncReport with per-record outcomes; aborted if the query failed
        """
        async with exclusive_pass(self._lock, "full sync"):
            report = SyncReport(mode="full")
            log.info("full_sync_started", mode="naive")

            try:
                records = await retry_with_config(
                    lambda: self._source.find({}),
                    self._retry_config,
                    description="find_all",
                )
            except TRANSIENT_ERRORS as e:
                report.aborted = True
                report.errors.append(f"Failed to read source: {e}")
                log.error("full_sync_read_failed", mode="naive", error=str(e))
                return report.finish()

            report.pages = 1
            await self._writer.write_batch(records, "full", report)

            report.finish()
            log.info(
                "full_sync_completed",
                mode="naive",
                attempted=report.attempted,
                succeeded=report.succeeded,
                failed=report.failed,
                duration_seconds=report.duration_seconds,
            )
            return report

    async def sync_with_limit(self, limit: int, cursor: BatchCursor) -> SyncReport:
        """
        Sync a single page of up to ``limit`` records at the cursor's offset.

        The cursor is normalized on first use and advanced by ``limit``.

        Raises:
            ConfigurationError: If limit is less than 1
        """
        _check_batch_size(limit)
        async with exclusive_pass(self._lock, "full sync"):
            report = SyncReport(mode="safe")
            await self._sync_page(limit, cursor, report)
            return report.finish()

    async def sync_all_safely(
        self, batch_size: int | None = None, cursor: BatchCursor | None = None
    ) -> SyncReport:
        """
        Sync every source record in pages of ``batch_size``.

        Args:
            batch_size: Records per page; defaults to the configured batch size
            cursor: Cursor to drive; it is reset at the start and end of the pass

        Returns:
            SyncReport with page and per-record outcomes

        Raises:
            ConfigurationError: If batch_size is less than 1 (before any I/O)
        """
        batch_size = self._sync_config.batch_size if batch_size is None else batch_size
        _check_batch_size(batch_size)
        cursor = cursor if cursor is not None else BatchCursor()

        async with exclusive_pass(self._lock, "full sync"):
            report = SyncReport(mode="safe")
            cursor.reset()
            log.info("full_sync_started", mode="safe", batch_size=batch_size)

            try:
                total = await retry_with_config(
                    lambda: self._source.count({}),
                    self._retry_config,
                    description="count",
                )
            except TRANSIENT_ERRORS as e:
                report.aborted = True
                report.errors.append(f"Failed to count source records: {e}")
                log.error("full_sync_count_failed", error=str(e))
                return report.finish()

            cursor.total_known = total
            try:
                while not cursor.exhausted:
                    await self._sync_page(batch_size, cursor, report)
            finally:
                cursor.reset()

            report.finish()
            log.info(
                "full_sync_completed",
                mode="safe",
                total_known=total,
                pages=report.pages,
                failed_pages=len(report.failed_pages),
                attempted=report.attempted,
                succeeded=report.succeeded,
                failed=report.failed,
                duration_seconds=report.duration_seconds,
            )
            return report

    async def _sync_page(self, limit: int, cursor: BatchCursor, report: SyncReport) -> None:
        offset = cursor.normalize()

        try:
            records = await retry_with_config(
                lambda: self._source.find({}, skip=offset, limit=limit),
                self._retry_config,
                description="find_page",
            )
        except TRANSIENT_ERRORS as e:
            report.failed_pages.append(offset)
            report.errors.append(f"Failed to read page at offset {offset}: {e}")
            log.error("page_read_failed", offset=offset, limit=limit, error=str(e))
            cursor.advance(limit)
            return

        report.pages += 1
        await self._writer.write_batch(records, "safe", report)
        cursor.advance(limit)

        log.debug(
            "page_synced",
            offset=offset,
            limit=limit,
            records=len(records),
            next_offset=cursor.offset,
        )


def _check_batch_size(batch_size: int) -> None:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ConfigurationError(f"batch size must be an integer >= 1, got {batch_size!r}")
