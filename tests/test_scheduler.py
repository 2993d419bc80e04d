"""Tests for the daily trigger scheduler and manual sync."""

import sys
import os
import asyncio
import threading
from datetime import datetime, time, timedelta

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from synchronizer.config import ConfigError, SynchronizerConfig, ValidationError
from synchronizer.core import CollectingEventSink, EventKind, StateStore, SyncReport
from synchronizer.scheduler import (
    SyncScheduler,
    SchedulerState,
    TICK_JOB_ID,
    is_trigger_due,
    last_occurrence
)
from synchronizer.utils.logging import setup_logging, get_logger


def make_config(source, dest, **schedule):
    return SynchronizerConfig(
        source_root=str(source),
        dest_root=str(dest),
        schedule={"trigger_times": ["12:00", "18:00"], **schedule}
    )


@pytest.fixture
def roots(tmp_path):
    source = tmp_path / "source"
    source.mkdir()
    (source / "a.txt").write_text("alpha")
    return source, tmp_path / "dest"


@pytest.fixture
def sink():
    return CollectingEventSink()


@pytest.fixture
async def scheduler(roots, sink):
    setup_logging(log_level="INFO")
    sync_scheduler = SyncScheduler(make_config(*roots), events=sink)
    yield sync_scheduler
    await sync_scheduler.close()


def test_trigger_window_boundaries():
    trigger = time(12, 0)
    today = datetime(2024, 5, 10)

    assert is_trigger_due(today.replace(hour=12), trigger, 60)
    assert is_trigger_due(today.replace(hour=12, second=30), trigger, 60)
    assert is_trigger_due(today.replace(hour=12, minute=1), trigger, 60)
    assert not is_trigger_due(today.replace(hour=12, minute=1, second=1), trigger, 60)
    assert not is_trigger_due(today.replace(hour=11, minute=59, second=59), trigger, 60)


def test_trigger_window_crosses_midnight():
    trigger = time(23, 59, 30)

    assert is_trigger_due(datetime(2024, 5, 11, 0, 0, 15), trigger, 60)
    assert last_occurrence(datetime(2024, 5, 11, 0, 0, 15), trigger) == datetime(2024, 5, 10, 23, 59, 30)
    assert not is_trigger_due(datetime(2024, 5, 11, 0, 0, 31), trigger, 60)


async def test_start_and_stop(scheduler, sink):
    assert scheduler.state == SchedulerState.STOPPED

    await scheduler.start()

    assert scheduler.state == SchedulerState.RUNNING
    assert scheduler.scheduler.running
    assert scheduler.scheduler.get_job(TICK_JOB_ID) is not None
    assert any(m.startswith("synchronization started at") for m in sink.messages)

    await scheduler.stop()

    assert scheduler.state == SchedulerState.STOPPED
    assert scheduler.scheduler.get_job(TICK_JOB_ID) is None
    assert any(m.startswith("synchronization stopped at") for m in sink.messages)

    # Restart after stop registers the tick again
    await scheduler.start()
    assert scheduler.scheduler.get_job(TICK_JOB_ID) is not None


async def test_start_creates_missing_destination(scheduler, roots):
    _, dest = roots
    assert not dest.exists()

    await scheduler.start()

    assert dest.is_dir()


async def test_start_rejected_when_destination_cannot_be_created(tmp_path, sink):
    source = tmp_path / "source"
    source.mkdir()
    blocker = tmp_path / "blocker"
    blocker.write_text("regular file")
    sync_scheduler = SyncScheduler(make_config(source, blocker / "dest"), events=sink)

    try:
        with pytest.raises(ConfigError) as exc_info:
            await sync_scheduler.start()

        assert exc_info.value.reason == "cannot-create-destination"
        assert sync_scheduler.state == SchedulerState.STOPPED
        assert sync_scheduler.scheduler.get_job(TICK_JOB_ID) is None
        validation = sink.of_kind(EventKind.VALIDATION)
        assert len(validation) == 1
        assert validation[0].message.startswith("could not create destination directory")
    finally:
        await sync_scheduler.close()


async def test_start_rejected_when_source_missing(tmp_path, sink):
    sync_scheduler = SyncScheduler(make_config(tmp_path / "nope", tmp_path / "dest"), events=sink)

    try:
        with pytest.raises(ValidationError) as exc_info:
            await sync_scheduler.start()

        assert exc_info.value.reason == "missing-source"
        assert sync_scheduler.state == SchedulerState.STOPPED
        assert sink.messages[-1].startswith("source directory does not exist")
    finally:
        await sync_scheduler.close()


async def test_start_rejected_for_empty_paths(sink):
    sync_scheduler = SyncScheduler(SynchronizerConfig(), events=sink)

    try:
        with pytest.raises(ConfigError):
            await sync_scheduler.start()
        assert "please enter both source and destination paths" in sink.messages
    finally:
        await sync_scheduler.close()


async def test_tick_fires_at_trigger_time_once(scheduler, roots, sink):
    """Fires at the trigger time exactly and not again from that trigger."""
    _, dest = roots
    await scheduler.start()
    trigger = datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)

    report = await scheduler.tick(now=trigger)

    assert report is not None
    assert report.files_created == 1
    assert (dest / "a.txt").read_text() == "alpha"
    assert any(m.startswith("synchronization completed at") for m in sink.messages)

    assert await scheduler.tick(now=trigger + timedelta(seconds=30)) is None
    assert await scheduler.tick(now=trigger + timedelta(seconds=60)) is None
    assert await scheduler.tick(now=trigger + timedelta(seconds=61)) is None
    assert scheduler.run_count == 1


async def test_tick_outside_window_does_nothing(scheduler):
    await scheduler.start()
    now = datetime.now().replace(hour=12, minute=1, second=1, microsecond=0)

    assert await scheduler.tick(now=now) is None
    assert scheduler.run_count == 0


async def test_second_trigger_and_next_day(scheduler):
    await scheduler.start()
    day = datetime(2024, 5, 10)

    assert await scheduler.tick(now=day.replace(hour=12)) is not None
    assert await scheduler.tick(now=day.replace(hour=18, second=10)) is not None
    assert await scheduler.tick(now=(day + timedelta(days=1)).replace(hour=12, second=5)) is not None
    assert scheduler.run_count == 3


async def test_tick_ignored_while_stopped(scheduler):
    now = datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)

    assert await scheduler.tick(now=now) is None
    assert scheduler.run_count == 0


async def test_set_trigger_times(scheduler):
    await scheduler.start()
    scheduler.set_trigger_times("07:30", time(21, 15))

    assert scheduler.trigger_times == [time(7, 30), time(21, 15)]
    assert await scheduler.tick(now=datetime(2024, 5, 10, 12, 0)) is None
    assert await scheduler.tick(now=datetime(2024, 5, 10, 7, 30, 20)) is not None


async def test_manual_sync_while_stopped(scheduler, roots, sink):
    _, dest = roots

    report = await scheduler.manual_sync_now()

    assert scheduler.state == SchedulerState.STOPPED
    assert report.files_created == 1
    assert (dest / "a.txt").exists()
    assert sink.messages[0] == "manual synchronization triggered"
    assert sink.messages[-1].startswith("synchronization completed at")

    second = await scheduler.manual_sync_now()
    assert second.files_copied == 0


async def test_manual_sync_rejects_invalid_endpoints(tmp_path, sink):
    sync_scheduler = SyncScheduler(make_config(tmp_path / "missing", tmp_path / "dest"), events=sink)

    try:
        with pytest.raises(ConfigError):
            await sync_scheduler.manual_sync_now()
        assert not (tmp_path / "dest").exists()
        assert sync_scheduler.run_count == 0
    finally:
        await sync_scheduler.close()


async def test_overlapping_trigger_is_rejected(scheduler, roots, sink):
    logger = get_logger("test_overlapping_trigger")
    started = threading.Event()
    release = threading.Event()

    def slow_sync(source, dest):
        started.set()
        release.wait(5)
        return SyncReport(source_root=str(source), dest_root=str(dest), finished_at=datetime.now())

    scheduler.walker.sync = slow_sync
    loop = asyncio.get_running_loop()

    first = asyncio.create_task(scheduler.manual_sync_now())
    await loop.run_in_executor(None, started.wait, 5)
    assert scheduler.is_syncing

    second = await scheduler.manual_sync_now()

    assert second is None
    warnings = sink.of_kind(EventKind.WARNING)
    assert len(warnings) == 1
    assert "already in progress" in warnings[0].message

    release.set()
    report = await first
    assert report is not None
    assert not scheduler.is_syncing
    assert scheduler.run_count == 1
    logger.info("✅ Overlap guard test passed")


async def test_stop_does_not_cancel_running_sync(scheduler):
    started = threading.Event()
    release = threading.Event()

    def slow_sync(source, dest):
        started.set()
        release.wait(5)
        return SyncReport(source_root=str(source), dest_root=str(dest), finished_at=datetime.now())

    await scheduler.start()
    scheduler.walker.sync = slow_sync
    loop = asyncio.get_running_loop()

    run = asyncio.create_task(scheduler.manual_sync_now())
    await loop.run_in_executor(None, started.wait, 5)
    await scheduler.stop()
    release.set()

    assert await run is not None
    assert scheduler.state == SchedulerState.STOPPED


async def test_state_is_saved_after_run(roots, tmp_path, sink):
    source, dest = roots
    state_file = tmp_path / "state" / "tracker.json"
    config = make_config(source, dest)

    first = SyncScheduler(config, events=sink, state_store=StateStore(state_file))
    try:
        report = await first.manual_sync_now()
        assert report.files_created == 1
    finally:
        await first.close()

    assert state_file.exists()

    # A restarted engine remembers what was already copied
    second = SyncScheduler(config, events=sink, state_store=StateStore(state_file))
    try:
        report = await second.manual_sync_now()
        assert report.files_copied == 0
        assert len(second.tracker) == 1
    finally:
        await second.close()


async def test_get_status(scheduler):
    status = scheduler.get_status()
    assert status["state"] == "stopped"
    assert status["trigger_times"] == ["12:00", "18:00"]
    assert status["last_result"] is None

    await scheduler.start()
    await scheduler.manual_sync_now()
    status = scheduler.get_status()

    assert status["state"] == "running"
    assert status["next_tick"] is not None
    assert status["run_count"] == 1
    assert status["tracked_files"] == 1
    assert status["last_result"]["files_copied"] == 1
