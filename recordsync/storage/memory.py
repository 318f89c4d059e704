"""In-memory document store implementing both store capabilities."""

import asyncio
import copy
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from recordsync.exceptions import DuplicateKeyError, PermanentRecordError
from recordsync.storage.base import Filter, Record

log = structlog.stdlib.get_logger()

_UPDATE_OPERATORS = {"$set", "$unset"}


class InMemoryStore:
    """Document store held in process memory.

    Records keep insertion order, get an ``_id`` on insert and, when
    ``timestamp_data`` is enabled, ``createdAt``/``updatedAt`` fields that the
    store maintains itself. Optional ``latency`` makes every call yield to the
    event loop for that many seconds, which is how tests model network delay.
    """

    def __init__(
        self,
        name: str = "memory",
        timestamp_data: bool = True,
        unique_fields: tuple[str, ...] = (),
        latency: float = 0.0,
    ):
        """
        Initialize the store.

        Args:
            name: Label used in log events
            timestamp_data: Maintain createdAt/updatedAt on every record
            unique_fields: Fields that must be unique across records
            latency: Seconds each call waits before touching data
        """
        self.name = name
        self._timestamp_data = timestamp_data
        self._unique_fields = unique_fields
        self._latency = latency
        self._records: list[Record] = []

        # Call counters, read by tests to assert on store traffic
        self.query_count = 0
        self.write_count = 0

        log.debug("memory_store_initialized", store=name, unique_fields=list(unique_fields))

    async def find(
        self, query: Filter, *, skip: int = 0, limit: int | None = None
    ) -> list[Record]:
        if skip < 0:
            raise ValueError("skip must be >= 0")
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        await self._pause()
        self.query_count += 1

        matches = [r for r in self._records if _matches(r, query)]
        end = None if limit is None else skip + limit
        return [copy.deepcopy(r) for r in matches[skip:end]]

    async def find_one(self, query: Filter) -> Record | None:
        await self._pause()
        self.query_count += 1

        for record in self._records:
            if _matches(record, query):
                return copy.deepcopy(record)
        return None

    async def count(self, query: Filter) -> int:
        await self._pause()
        self.query_count += 1
        return sum(1 for r in self._records if _matches(r, query))

    async def insert(self, record: Record) -> Record:
        if not isinstance(record, dict):
            raise PermanentRecordError(f"record must be a mapping, got {type(record).__name__}")
        await self._pause()
        self.write_count += 1

        doc = copy.deepcopy(record)
        doc.setdefault("_id", uuid.uuid4().hex[:16])
        self._check_unique(doc)
        if self._timestamp_data:
            now = _now()
            doc["createdAt"] = now
            doc["updatedAt"] = now

        self._records.append(doc)
        return copy.deepcopy(doc)

    async def update(self, query: Filter, patch: Record) -> int:
        await self._pause()
        self.write_count += 1

        matched = [r for r in self._records if _matches(r, query)]
        for record in matched:
            updated = _apply_patch(record, patch)
            self._check_unique(updated, ignore=record)
            if self._timestamp_data:
                updated["createdAt"] = record.get("createdAt", _now())
                updated["updatedAt"] = _now()
            record.clear()
            record.update(updated)
        return len(matched)

    async def remove(self, query: Filter) -> int:
        await self._pause()
        self.write_count += 1

        before = len(self._records)
        self._records = [r for r in self._records if not _matches(r, query)]
        return before - len(self._records)

    def all(self) -> list[Record]:
        """Snapshot of every record, bypassing counters and latency."""
        return [copy.deepcopy(r) for r in self._records]

    def __len__(self) -> int:
        return len(self._records)

    async def _pause(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        else:
            await asyncio.sleep(0)

    def _check_unique(self, doc: Record, ignore: Record | None = None) -> None:
        for field in ("_id", *self._unique_fields):
            if field not in doc:
                continue
            for existing in self._records:
                if existing is ignore:
                    continue
                if existing.get(field) == doc[field]:
                    raise DuplicateKeyError(
                        f"{self.name}: unique constraint violated for {field}={doc[field]!r}",
                        key=doc[field],
                    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _matches(record: Record, query: Filter) -> bool:
    for field, expected in query.items():
        if isinstance(expected, dict) and "$in" in expected:
            if record.get(field) not in expected["$in"]:
                return False
        elif field not in record or record[field] != expected:
            return False
    return True


def _apply_patch(record: Record, patch: Record) -> Record:
    operators = {k for k in patch if k.startswith("$")}
    if not operators:
        # Plain document replaces everything but the identifier
        replaced = copy.deepcopy(patch)
        replaced["_id"] = record["_id"]
        return replaced

    unknown = operators - _UPDATE_OPERATORS
    if unknown or len(operators) != len(patch):
        raise PermanentRecordError(f"unsupported update operators: {sorted(unknown) or patch}")

    updated: dict[str, Any] = copy.deepcopy(record)
    for field, value in patch.get("$set", {}).items():
        if field == "_id" and value != record["_id"]:
            raise PermanentRecordError("cannot modify _id")
        updated[field] = copy.deepcopy(value)
    for field in patch.get("$unset", {}):
        updated.pop(field, None)
    return updated
