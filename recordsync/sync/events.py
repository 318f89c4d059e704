"""Per-record event emission after successful upserts.

Observers are told about every record a pass writes to the target, e.g. to
feed metrics or a downstream notifier. They run after the write and are kept
out of the sync engines' control flow: an observer that raises is logged
and ignored.
"""

import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Hashable, Literal, Union

import structlog

from recordsync.storage.base import Record
from recordsync.sync.models import utc_now

log = structlog.stdlib.get_logger()


@dataclass(frozen=True)
class RecordEvent:
    """A record that was upserted into the target."""

    key: Hashable
    record: Record
    mode: Literal["full", "safe", "delta"]
    synced_at: datetime = field(default_factory=utc_now)


EventObserver = Callable[[RecordEvent], Union[None, Awaitable[None]]]


class EventDispatcher:
    """Fans a RecordEvent out to every registered observer."""

    def __init__(self, observers: list[EventObserver] | None = None):
        self._observers: list[EventObserver] = list(observers or [])
        self.dispatched = 0
        self.observer_failures = 0

    def subscribe(self, observer: EventObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: EventObserver) -> None:
        self._observers.remove(observer)

    def __len__(self) -> int:
        return len(self._observers)

    async def emit(self, event: RecordEvent) -> None:
        """Invoke every observer; failures never propagate to the caller."""
        self.dispatched += 1
        for observer in self._observers:
            try:
                result = observer(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.observer_failures += 1
                log.warning(
                    "event_observer_failed",
                    observer=getattr(observer, "__name__", type(observer).__name__),
                    key=event.key,
                    mode=event.mode,
                    error=str(e),
                )


class LoggingObserver:
    """Logs one line per synced record."""

    def __init__(self, include_record: bool = False, **context: Any):
        self._include_record = include_record
        self._log = log.bind(**context) if context else log

    def __call__(self, event: RecordEvent) -> None:
        fields: dict[str, Any] = {"key": event.key, "mode": event.mode}
        if self._include_record:
            fields["record"] = event.record
        self._log.info("event_sent", **fields)
