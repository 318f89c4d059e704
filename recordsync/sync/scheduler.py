"""Scheduler that drives the first full sync and the delta sync cadence."""

import asyncio
from enum import Enum
from typing import Hashable

import structlog

from recordsync.exceptions import ConfigurationError
from recordsync.models.config import AppConfig, SyncConfig
from recordsync.storage.base import SourceStore, TargetStore
from recordsync.sync.change_tracker import ChangeTracker
from recordsync.sync.delta_sync import DeltaSyncEngine
from recordsync.sync.events import EventDispatcher, EventObserver
from recordsync.sync.full_sync import FullSyncEngine
from recordsync.sync.models import SyncReport, SyncState
from recordsync.sync.writer import RecordWriter

log = structlog.stdlib.get_logger()


class SchedulerState(str, Enum):
    UNSYNCED = "unsynced"
    SYNCED = "synced"


class SyncScheduler:
    """Keeps the target converging on the source.

    While UNSYNCED every pass is a full sync; the first full sync that reads
    the whole source flips the shared SyncState and the scheduler is SYNCED
    from then on, running only delta syncs every ``poll_interval`` seconds.
    Records that failed transiently during that full sync are handed to the
    change tracker so the delta cadence retries them.

    All passes, whether started by ``start()``, the polling loop or a direct
    ``tick()``, take the same lock, so they never overlap.
    """

    def __init__(
        self,
        source: SourceStore,
        target: TargetStore,
        config: AppConfig | None = None,
        tracker: ChangeTracker | None = None,
        state: SyncState | None = None,
        observers: list[EventObserver] | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            source: Read-only store to copy from
            target: Write-only store to copy into
            config: Application configuration (defaults apply if None)
            tracker: Change tracker fed by the source's change hook
            state: Shared "has a full sync completed" flag
            observers: Called once per record upserted

        Raises:
            ConfigurationError: If batch size or poll interval are invalid
        """
        self._config = config or AppConfig()
        _check_sync_config(self._config.sync)

        self.tracker = tracker if tracker is not None else ChangeTracker()
        self.sync_state = state if state is not None else SyncState()
        self.events = EventDispatcher(observers)

        writer = RecordWriter(target, self._config.sync, self._config.retry, self.events)
        self.full_sync = FullSyncEngine(source, writer, self._config.sync, self._config.retry)
        self.delta_sync = DeltaSyncEngine(
            source, writer, self.tracker, self._config.sync, self._config.retry
        )

        self._pass_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._poll_task: asyncio.Task | None = None
        self._pass_task: asyncio.Task | None = None
        self._starting = False

        self.last_report: SyncReport | None = None
        self.tick_count = 0
        self.skipped_ticks = 0
        self.tick_errors = 0

        log.info(
            "sync_scheduler_initialized",
            poll_interval=self._config.sync.poll_interval,
            full_sync_mode=self._config.sync.full_sync_mode,
            batch_size=self._config.sync.batch_size,
        )

    @property
    def state(self) -> SchedulerState:
        if self.sync_state.full_sync_completed:
            return SchedulerState.SYNCED
        return SchedulerState.UNSYNCED

    @property
    def poll_interval(self) -> float:
        return self._config.sync.poll_interval

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def notify_changed(self, key: Hashable) -> None:
        """Change hook for whatever process mutates the source."""
        self.tracker.notify_changed(key)

    async def start(self) -> SyncReport | None:
        """
        Run the first full sync if one is needed, then begin polling.

        Returns:
            The full sync report, or None if no full sync ran
        """
        if self.running or self._starting:
            log.warning("scheduler_already_running")
            return None

        self._starting = True
        self._stop_event.clear()
        report = None
        try:
            log.info("scheduler_starting", state=self.state.value)
            async with self._pass_lock:
                if self.state is SchedulerState.UNSYNCED:
                    report = await self._run_pass()
                else:
                    log.info("full_sync_not_required")

            if self._stop_event.is_set():
                log.info("scheduler_stopped_during_start")
                return report

            self._poll_task = asyncio.create_task(self._poll_loop(), name="recordsync-poll")
        finally:
            self._starting = False

        return report

    async def tick(self) -> SyncReport | None:
        """
        Run one cadence step: full sync while UNSYNCED, delta sync after.

        Returns:
            The pass report, or None if the tick was skipped or failed
        """
        if self._pass_lock.locked():
            self.skipped_ticks += 1
            log.info("tick_skipped", reason="pass_in_progress", skipped_ticks=self.skipped_ticks)
            return None

        async with self._pass_lock:
            self.tick_count += 1
            return await self._run_pass()

    async def stop(self) -> None:
        """Cancel future ticks and wait for the pass in flight, if any, to finish."""
        self._stop_event.set()
        current = asyncio.current_task()

        poll_task, self._poll_task = self._poll_task, None
        if poll_task is not None and poll_task is not current:
            await poll_task

        # A pass started by start() or tick() outside the polling loop
        if self._pass_task is not None and self._pass_task is not current:
            async with self._pass_lock:
                pass

        log.info("scheduler_stopped", state=self.state.value, tick_count=self.tick_count)

    async def synchronize(self) -> None:
        """Start and keep polling until stop() is called."""
        await self.start()
        await self._stop_event.wait()
        await self.stop()

    async def __aenter__(self) -> "SyncScheduler":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _poll_loop(self) -> None:
        log.info("poll_loop_started", poll_interval=self.poll_interval)
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                break
            except asyncio.TimeoutError:
                pass
            await self.tick()
        log.info("poll_loop_stopped")

    async def _run_pass(self) -> SyncReport | None:
        """Run the pass the current state calls for; errors end the pass, not the scheduler."""
        self._pass_task = asyncio.current_task()
        try:
            if self.state is SchedulerState.UNSYNCED:
                report = await self._run_full_sync()
            else:
                report = await self.delta_sync.sync_new_changes()
            self.last_report = report
            return report
        except Exception as e:
            self.tick_errors += 1
            log.exception("tick_failed", state=self.state.value, error=str(e))
            return None
        finally:
            self._pass_task = None

    async def _run_full_sync(self) -> SyncReport:
        if self._config.sync.full_sync_mode == "naive":
            report = await self.full_sync.sync_all_no_limit()
        else:
            report = await self.full_sync.sync_all_safely(self._config.sync.batch_size)

        if not report.completed:
            log.warning(
                "full_sync_incomplete",
                failed_pages=report.failed_pages,
                errors=len(report.errors),
            )
            return report

        if report.retryable_keys:
            self.tracker.notify_many(report.retryable_keys)
            log.warning("full_sync_failures_requeued", keys=report.retryable_keys)

        if self.sync_state.mark_synced():
            log.info(
                "sync_state_transitioned",
                from_state=SchedulerState.UNSYNCED.value,
                to_state=SchedulerState.SYNCED.value,
            )
        return report


def _check_sync_config(config: SyncConfig) -> None:
    # Models built with model_construct() or mutated after validation skip pydantic checks
    if not isinstance(config.batch_size, int) or config.batch_size < 1:
        raise ConfigurationError(f"batch_size must be >= 1, got {config.batch_size!r}")
    if config.poll_interval is None or config.poll_interval <= 0:
        raise ConfigurationError(f"poll_interval must be > 0, got {config.poll_interval!r}")
    if config.full_sync_mode not in ("safe", "naive"):
        raise ConfigurationError(f"unknown full_sync_mode: {config.full_sync_mode!r}")
