"""Upserts records into the target store by business key."""

import asyncio
from typing import Any, Iterable, Literal

import structlog

from recordsync.exceptions import TRANSIENT_ERRORS, DuplicateKeyError, PermanentRecordError
from recordsync.models.config import RetryConfig, SyncConfig
from recordsync.storage.base import Record, TargetStore
from recordsync.sync.events import EventDispatcher, RecordEvent
from recordsync.sync.models import SyncReport
from recordsync.utils.retry import retry_with_config

log = structlog.stdlib.get_logger()

SyncMode = Literal["full", "safe", "delta"]


class RecordWriter:
    """Writes source records into the target with insert-or-update semantics.

    The target is only ever written to: an update keyed by the business key is
    tried first and an insert follows when nothing matched. The pair is
    retried as a unit on transient errors.
    """

    def __init__(
        self,
        target: TargetStore,
        sync_config: SyncConfig,
        retry_config: RetryConfig,
        events: EventDispatcher | None = None,
    ):
        self._target = target
        self._key_field = sync_config.key_field
        self._id_field = sync_config.id_field
        self._max_concurrency = sync_config.max_concurrency
        self._retry_config = retry_config
        self._events = events or EventDispatcher()

    @property
    def events(self) -> EventDispatcher:
        return self._events

    def key_of(self, record: Record) -> Any:
        return record.get(self._key_field)

    async def upsert(self, record: Record) -> None:
        """
        Upsert one record, retrying transient failures.

        Raises:
            PermanentRecordError: If the record has no business key or the target rejects it
            TransientStoreError: If retries are exhausted
        """
        if self.key_of(record) is None:
            raise PermanentRecordError(f"record has no '{self._key_field}' field")

        await retry_with_config(
            lambda: self._upsert_once(record),
            self._retry_config,
            description="upsert",
        )

    async def write_batch(
        self, records: Iterable[Record], mode: SyncMode, report: SyncReport
    ) -> None:
        """Upsert records with bounded concurrency, accumulating outcomes in report."""
        records = list(records)
        if self._max_concurrency == 1:
            for record in records:
                await self.write_record(record, mode, report)
            return

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(record: Record) -> None:
            async with semaphore:
                await self.write_record(record, mode, report)

        await asyncio.gather(*(bounded(record) for record in records))

    async def write_record(self, record: Record, mode: SyncMode, report: SyncReport) -> bool:
        """Upsert one record, recording the outcome in report instead of raising."""
        key = self.key_of(record)
        if key is None:
            key = f"<missing {self._key_field}>"
        report.attempted += 1

        try:
            await self.upsert(record)
        except PermanentRecordError as e:
            report.record_failure(key, f"Rejected record {key}: {e}", permanent=True)
            log.error("record_rejected", key=key, mode=mode, error=str(e))
            return False
        except TRANSIENT_ERRORS as e:
            report.record_failure(key, f"Failed to sync record {key} after retries: {e}")
            log.error("record_sync_failed", key=key, mode=mode, error=str(e))
            return False
        except Exception as e:
            report.record_failure(key, f"Unexpected error syncing record {key}: {e}")
            log.exception("record_sync_unexpected_error", key=key, mode=mode)
            return False

        report.succeeded += 1
        await self._events.emit(RecordEvent(key=key, record=record, mode=mode))
        return True

    async def _upsert_once(self, record: Record) -> None:
        key_value = record[self._key_field]
        fields = self._writable_fields(record)

        matched = await self._target.update({self._key_field: key_value}, {"$set": fields})
        if matched:
            return

        try:
            await self._target.insert(fields)
        except DuplicateKeyError:
            # Another writer inserted the key between our update and insert
            matched = await self._target.update({self._key_field: key_value}, {"$set": fields})
            if not matched:
                raise

    def _writable_fields(self, record: Record) -> dict[str, Any]:
        return {k: v for k, v in record.items() if k != self._id_field}
