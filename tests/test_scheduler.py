"""Periodic sync timer: start/stop semantics, overlap skipping, initial-sync cadence."""

from __future__ import annotations

import asyncio

import pytest

from scheduler import PeriodicSync, start_after_initial_sync
from sync import SyncOutcome, SyncReport


class FakeSynchronizer:
    def __init__(self, outcome: SyncOutcome = SyncOutcome.SUCCESS) -> None:
        self.outcome = outcome
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def sync_all(self) -> SyncReport:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return SyncReport(self.outcome)


def blocking_sleep(slept: list[float]):
    """Returns at once for short waits; waits forever for timer intervals."""

    async def sleep(seconds: float) -> None:
        slept.append(seconds)
        if seconds >= 60:
            await asyncio.Event().wait()

    return sleep


async def spin(times: int = 5) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


def test_start_rejects_non_positive_interval():
    scheduler = PeriodicSync(FakeSynchronizer())
    with pytest.raises(ValueError):
        scheduler.start(0)


@pytest.mark.asyncio
async def test_stop_reports_whether_a_timer_was_running():
    scheduler = PeriodicSync(FakeSynchronizer(), sleep=blocking_sleep([]))
    assert scheduler.stop() is False

    scheduler.start(3)
    assert scheduler.running
    assert scheduler.stop() is True
    assert not scheduler.running
    assert scheduler.stop() is False


@pytest.mark.asyncio
async def test_restart_replaces_the_previous_timer():
    slept: list[float] = []
    scheduler = PeriodicSync(FakeSynchronizer(), sleep=blocking_sleep(slept))

    scheduler.start(3)
    first = scheduler._timer
    scheduler.start(2)
    await spin()

    assert first.cancelled()
    assert scheduler.interval_minutes == 2
    # Only the live timer ever started waiting
    assert slept == [120.0]
    scheduler.stop()


@pytest.mark.asyncio
async def test_tick_while_pass_in_flight_is_skipped():
    synchronizer = FakeSynchronizer()
    synchronizer.gate = asyncio.Event()
    scheduler = PeriodicSync(synchronizer)

    running = asyncio.ensure_future(scheduler.fire())
    await spin()
    assert scheduler.in_flight

    assert await scheduler.fire() is None
    assert scheduler.skipped == 1

    synchronizer.gate.set()
    report = await running
    assert report.ok
    assert synchronizer.calls == 1
    assert not scheduler.in_flight


@pytest.mark.asyncio
async def test_stop_lets_in_flight_pass_finish():
    synchronizer = FakeSynchronizer()
    synchronizer.gate = asyncio.Event()
    ticks = 0
    hold = asyncio.Event()

    async def sleep(seconds: float) -> None:
        nonlocal ticks
        ticks += 1
        if ticks > 1:
            await hold.wait()

    scheduler = PeriodicSync(synchronizer, sleep=sleep)
    scheduler.start(0.5)
    await spin()
    assert scheduler.in_flight

    assert scheduler.stop() is True
    assert scheduler.in_flight

    synchronizer.gate.set()
    await asyncio.gather(*list(scheduler._passes))
    assert synchronizer.calls == 1
    assert not scheduler.in_flight


@pytest.mark.asyncio
async def test_initial_sync_success_uses_regular_interval():
    slept: list[float] = []
    scheduler = PeriodicSync(FakeSynchronizer(), sleep=blocking_sleep(slept))

    report = await start_after_initial_sync(
        scheduler, initial_delay=2.0, interval_minutes=3.0, retry_interval_minutes=2.0
    )
    await spin()

    assert report.ok
    assert scheduler.running
    assert scheduler.interval_minutes == 3.0
    assert slept == [2.0, 180.0]
    scheduler.stop()


@pytest.mark.asyncio
async def test_initial_sync_failure_uses_retry_interval():
    slept: list[float] = []
    scheduler = PeriodicSync(FakeSynchronizer(SyncOutcome.ABORTED), sleep=blocking_sleep(slept))

    report = await start_after_initial_sync(
        scheduler, initial_delay=2.0, interval_minutes=3.0, retry_interval_minutes=2.0
    )
    await spin()

    assert not report.ok
    assert scheduler.interval_minutes == 2.0
    assert slept == [2.0, 120.0]
    scheduler.stop()
