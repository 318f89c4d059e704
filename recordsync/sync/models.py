"""Data models for synchronization state and pass results."""

from datetime import datetime, timezone
from typing import Any, Hashable, Literal

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChangeEntry(BaseModel):
    """A business key noted as changed in the source since it was last synced."""

    model_config = {"frozen": True}

    sequence: int = Field(default=..., ge=0, description="Tracker-assigned append order")
    key: Hashable = Field(default=..., description="Business key value as stored in the source")
    noted_at: datetime = Field(default_factory=utc_now, description="When the change was noted")


class BatchCursor(BaseModel):
    """Pagination position of one in-flight safe sync.

    A fresh cursor has offset -1 ("not started"). The first page normalizes it
    to 0 and each page advances it by the batch size until it reaches the total
    captured when the pass began.
    """

    offset: int = Field(default=-1, ge=-1, description="Next skip() value, -1 before first use")
    total_known: int | None = Field(
        default=None, ge=0, description="Source record count captured at pass start"
    )
    pages: int = Field(default=0, ge=0, description="Pages issued so far")

    @property
    def started(self) -> bool:
        return self.offset >= 0

    @property
    def exhausted(self) -> bool:
        """True once the cursor has moved past the known total."""
        if self.total_known is None:
            return False
        return self.offset >= self.total_known

    def normalize(self) -> int:
        if self.offset < 0:
            self.offset = 0
        return self.offset

    def advance(self, batch_size: int) -> None:
        self.normalize()
        self.offset += batch_size
        self.pages += 1

    def reset(self) -> None:
        self.offset = -1
        self.total_known = None
        self.pages = 0


class SyncState(BaseModel):
    """Process-wide record of whether a full sync has ever completed."""

    full_sync_completed: bool = Field(default=False, description="Set once, never cleared")
    completed_at: datetime | None = Field(default=None, description="When the flag was set")
    full_sync_count: int = Field(default=0, ge=0, description="Full syncs that set the flag")

    def mark_synced(self) -> bool:
        """
        Record the first completed full sync.

        Returns:
            True if this call flipped the flag, False if it was already set
        """
        if self.full_sync_completed:
            return False
        self.full_sync_completed = True
        self.completed_at = utc_now()
        self.full_sync_count += 1
        return True


class SyncReport(BaseModel):
    """Report of one synchronization pass."""

    mode: Literal["full", "safe", "delta"] = Field(default=..., description="Kind of pass")
    attempted: int = Field(default=0, ge=0, description="Records the pass tried to upsert")
    succeeded: int = Field(default=0, ge=0, description="Records upserted into the target")
    failed: int = Field(default=0, ge=0, description="Records that could not be synced")
    skipped: int = Field(
        default=0, ge=0, description="Changed keys no longer present in the source"
    )
    failed_keys: list[Any] = Field(
        default_factory=list, description="Business key values that failed in this pass"
    )
    rejected_keys: list[Any] = Field(
        default_factory=list,
        description="Subset of failed_keys the target rejected permanently",
    )
    pages: int = Field(default=0, ge=0, description="Source pages fetched")
    failed_pages: list[int] = Field(
        default_factory=list, description="Offsets of pages whose fetch failed"
    )
    errors: list[str] = Field(
        default_factory=list, description="List of errors encountered during sync"
    )
    aborted: bool = Field(
        default=False, description="True if the pass stopped before reaching its end"
    )
    start_time: datetime = Field(default_factory=utc_now, description="Pass start timestamp")
    end_time: datetime | None = Field(default=None, description="Pass end timestamp")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Pass duration in seconds")

    @property
    def total_processed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    @property
    def completed(self) -> bool:
        """True if every page was read, even if individual records failed."""
        return not self.aborted and not self.failed_pages

    @property
    def success(self) -> bool:
        """Check if the pass completed without errors."""
        return len(self.errors) == 0

    @property
    def retryable_keys(self) -> list[Any]:
        """Failed keys worth another attempt; permanent rejections are excluded."""
        return [key for key in self.failed_keys if key not in self.rejected_keys]

    def record_failure(self, key: Any, error: str, permanent: bool = False) -> None:
        self.failed += 1
        if key not in self.failed_keys:
            self.failed_keys.append(key)
        if permanent and key not in self.rejected_keys:
            self.rejected_keys.append(key)
        self.errors.append(error)

    def finish(self) -> "SyncReport":
        self.end_time = utc_now()
        self.duration_seconds = max(0.0, (self.end_time - self.start_time).total_seconds())
        return self
