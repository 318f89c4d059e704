"""End-to-end scenarios: seed, full sync, touch, delta sync."""

import pytest

from recordsync.sync.events import EventDispatcher
from recordsync.sync.models import BatchCursor
from recordsync.sync.scheduler import SchedulerState, SyncScheduler
from tests.fakes import FlakyStore, RecordingObserver, make_config, make_records, seed

COMPANIES = [
    {"name": "GE", "owner": "test", "amount": 1000000},
    {"name": "Exxon", "owner": "test2", "amount": 5000000},
    {"name": "Google", "owner": "test3", "amount": 5000001},
]


@pytest.mark.asyncio
async def test_naive_full_sync_then_single_delta(source, target, observer) -> None:
    await seed(source, COMPANIES)
    scheduler = SyncScheduler(
        source, target, config=make_config(full_sync_mode="naive", poll_interval=60),
        observers=[observer],
    )

    full = await scheduler.full_sync.sync_all_no_limit()
    assert full.succeeded == 3
    assert {r["name"] for r in target.all()} == {"GE", "Exxon", "Google"}
    before = {r["name"]: r for r in target.all()}
    writes_before = target.write_count

    await source.update({"name": "GE"}, {"$set": {"owner": "test4"}})
    scheduler.notify_changed("GE")
    delta = await scheduler.delta_sync.sync_new_changes()

    after = {r["name"]: r for r in target.all()}
    assert delta.succeeded == 1
    assert observer.keys("delta") == ["GE"]
    assert target.write_count - writes_before == 1
    assert after["GE"]["owner"] == "test4"
    assert after["Exxon"] == before["Exxon"]
    assert after["Google"] == before["Google"]


@pytest.mark.asyncio
async def test_thirteen_records_paginated_by_five(source, target) -> None:
    await seed(source, COMPANIES + make_records(10))
    flaky = FlakyStore(source)
    observer = RecordingObserver()
    scheduler = SyncScheduler(
        flaky, target, config=make_config(batch_size=5, poll_interval=60), observers=[observer]
    )
    cursor = BatchCursor()

    report = await scheduler.full_sync.sync_all_safely(5, cursor)

    assert flaky.page_sizes == [5, 5, 3]
    assert report.pages == 3
    assert len(target) == 13
    assert len(observer.events) == 13
    assert cursor == BatchCursor()


@pytest.mark.asyncio
async def test_scheduler_converges_after_start_and_tick(source, target) -> None:
    await seed(source, COMPANIES)
    observer = RecordingObserver()
    scheduler = SyncScheduler(
        source, target, config=make_config(poll_interval=60), observers=[observer]
    )

    await scheduler.start()
    assert scheduler.state is SchedulerState.SYNCED

    await source.update({"name": "Google"}, {"$set": {"amount": 1}})
    await source.insert({"name": "Acme", "owner": "new", "amount": 7})
    scheduler.notify_changed("Google")
    scheduler.notify_changed("Acme")
    delta = await scheduler.tick()
    await scheduler.stop()

    assert delta.succeeded == 2
    source_view = {r["name"]: (r["owner"], r["amount"]) for r in source.all()}
    target_view = {r["name"]: (r["owner"], r["amount"]) for r in target.all()}
    assert target_view == source_view
    assert isinstance(scheduler.events, EventDispatcher)
    assert scheduler.events.dispatched == 5
