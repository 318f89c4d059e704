"""Property-based tests for delta synchronization."""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from recordsync.exceptions import SyncInProgressError
from recordsync.storage.memory import InMemoryStore
from recordsync.sync.change_tracker import ChangeTracker
from recordsync.sync.delta_sync import DeltaSyncEngine
from recordsync.sync.events import EventDispatcher
from recordsync.sync.writer import RecordWriter
from tests.fakes import FlakyStore, RecordingObserver, make_config, make_records, seed


def build_engine(source, target, tracker=None, observers=None, **sync_settings):
    config = make_config(**sync_settings)
    tracker = tracker if tracker is not None else ChangeTracker()
    writer = RecordWriter(target, config.sync, config.retry, EventDispatcher(observers))
    return DeltaSyncEngine(source, writer, tracker, config.sync, config.retry), tracker


@pytest.mark.asyncio
async def test_empty_pending_set_touches_no_store(source, target) -> None:
    await seed(source, make_records(3))
    queries, writes = source.query_count, target.write_count
    engine, _ = build_engine(source, target)

    report = await engine.sync_new_changes()

    assert report.attempted == 0
    assert report.success
    assert source.query_count == queries
    assert target.write_count == writes


@given(touches=st.integers(min_value=1, max_value=10))
@settings(max_examples=20, deadline=None)
def test_repeated_touches_upsert_once(touches: int) -> None:
    async def scenario():
        source = InMemoryStore(name="source", unique_fields=("name",))
        target = InMemoryStore(name="target", unique_fields=("name",))
        await seed(source, make_records(3))
        observer = RecordingObserver()
        engine, tracker = build_engine(source, target, observers=[observer])

        for n in range(touches):
            await source.update({"name": "company-001"}, {"$set": {"owner": f"touch-{n}"}})
            tracker.notify_changed("company-001")

        report = await engine.sync_new_changes()
        return report, observer, tracker, target

    report, observer, tracker, target = asyncio.run(scenario())

    assert report.succeeded == 1
    assert observer.keys() == ["company-001"]
    assert tracker.count_for("company-001") == 0
    assert target.all()[0]["owner"] == f"touch-{touches - 1}"


@pytest.mark.asyncio
async def test_current_source_value_wins_over_notification_time(source, target) -> None:
    await source.insert({"name": "GE", "owner": "test"})
    engine, tracker = build_engine(source, target)

    tracker.notify_changed("GE")
    await source.update({"name": "GE"}, {"$set": {"owner": "test5"}})
    await engine.sync_new_changes()

    assert target.all()[0]["owner"] == "test5"


@pytest.mark.asyncio
async def test_failed_keys_stay_pending(source, target) -> None:
    await seed(source, make_records(3))
    flaky_target = FlakyStore(target)
    flaky_target.transient_keys["company-002"] = 99
    engine, tracker = build_engine(source, flaky_target)
    tracker.notify_many(["company-000", "company-002", "company-002"])

    report = await engine.sync_new_changes()

    assert report.failed_keys == ["company-002"]
    assert report.succeeded == 1
    assert tracker.pending_keys() == {"company-002"}
    assert tracker.count_for("company-002") == 2

    flaky_target.transient_keys.clear()
    retry = await engine.sync_new_changes()
    assert retry.succeeded == 1
    assert tracker.is_empty


@pytest.mark.asyncio
async def test_unreadable_key_stays_pending(source, target) -> None:
    await seed(source, make_records(2))
    flaky_source = FlakyStore(source)
    flaky_source.transient_keys["company-000"] = 99
    engine, tracker = build_engine(flaky_source, target)
    tracker.notify_many(["company-000", "company-001"])

    report = await engine.sync_new_changes()

    assert report.attempted == 2
    assert report.failed_keys == ["company-000"]
    assert tracker.pending_keys() == {"company-000"}
    assert [r["name"] for r in target.all()] == ["company-001"]


@pytest.mark.asyncio
async def test_key_missing_from_source_is_skipped_and_drained(source, target) -> None:
    await seed(source, make_records(1))
    engine, tracker = build_engine(source, target)
    tracker.notify_many(["company-000", "deleted-key"])

    report = await engine.sync_new_changes()

    assert report.succeeded == 1
    assert report.skipped == 1
    assert report.success
    assert tracker.is_empty


@pytest.mark.asyncio
async def test_changes_noted_during_pass_remain_pending() -> None:
    source = InMemoryStore(name="source", unique_fields=("name",), latency=0.01)
    target = InMemoryStore(name="target", unique_fields=("name",))
    await seed(source, make_records(3))
    engine, tracker = build_engine(source, target)
    tracker.notify_many(["company-000", "company-001"])

    async def note_late_change() -> None:
        await asyncio.sleep(0.005)
        tracker.notify_changed("company-002")
        tracker.notify_changed("company-000")

    report, _ = await asyncio.gather(engine.sync_new_changes(), note_late_change())

    assert report.succeeded == 2
    assert [e.key for e in tracker.snapshot()] == ["company-002", "company-000"]


@pytest.mark.asyncio
async def test_bounded_concurrency_delta(source, target) -> None:
    await seed(source, make_records(8))
    engine, tracker = build_engine(source, target, max_concurrency=3)
    tracker.notify_many(r["name"] for r in make_records(8))

    report = await engine.sync_new_changes()

    assert report.succeeded == 8
    assert len(target) == 8
    assert tracker.is_empty


@pytest.mark.asyncio
async def test_concurrent_delta_syncs_are_refused() -> None:
    source = InMemoryStore(name="source", latency=0.005)
    target = InMemoryStore(name="target")
    await seed(source, make_records(2))
    engine, tracker = build_engine(source, target)
    tracker.notify_many(["company-000", "company-001"])

    first = asyncio.create_task(engine.sync_new_changes())
    await asyncio.sleep(0)

    with pytest.raises(SyncInProgressError):
        await engine.sync_new_changes()

    assert (await first).succeeded == 2


@given(key=st.integers(min_value=0, max_value=10_000))
@settings(max_examples=20, deadline=None)
def test_integer_keys_are_looked_up_as_stored(key: int) -> None:
    async def scenario():
        source = InMemoryStore(name="source", unique_fields=("id",))
        target = InMemoryStore(name="target", unique_fields=("id",))
        await source.insert({"id": key, "v": 1})
        engine, tracker = build_engine(source, target, key_field="id")

        await source.update({"id": key}, {"$set": {"v": 99}})
        tracker.notify_changed(key)
        tracker.notify_changed(key)
        report = await engine.sync_new_changes()
        return report, tracker, target

    report, tracker, target = asyncio.run(scenario())

    assert report.succeeded == 1
    assert report.skipped == 0
    assert [(r["id"], r["v"]) for r in target.all()] == [(key, 99)]
    assert tracker.is_empty


@pytest.mark.asyncio
async def test_rejected_keys_are_drained_and_reported(source, target) -> None:
    await seed(source, make_records(2))
    flaky_target = FlakyStore(target)
    flaky_target.reject_keys.add("company-000")
    engine, tracker = build_engine(source, flaky_target)
    tracker.notify_many(["company-000", "company-001"])

    report = await engine.sync_new_changes()

    assert report.failed_keys == ["company-000"]
    assert report.rejected_keys == ["company-000"]
    assert report.retryable_keys == []
    assert tracker.is_empty
    assert flaky_target.calls["update"] == 2
