"""Real-loop behavior of the cancellable timer helpers."""

import asyncio

import pytest

from pickersync.common.scheduler import Scheduler


@pytest.mark.asyncio
async def test_deferred_task_fires_once_and_is_forgotten():
    scheduler = Scheduler()
    fired = []

    scheduler.call_later(0.01, lambda: fired.append(True))
    assert scheduler.pending == 1
    await asyncio.sleep(0.05)

    assert fired == [True]
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_cancel_all_stops_pending_timers():
    scheduler = Scheduler()
    fired = []
    runs = []

    async def tick():
        runs.append(1)

    scheduler.call_later(0.02, lambda: fired.append(True))
    scheduler.every(0.01, tick)
    scheduler.cancel_all()
    await asyncio.sleep(0.05)

    assert fired == []
    assert runs == []
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_periodic_task_survives_failures():
    scheduler = Scheduler()
    runs = []

    async def flaky():
        runs.append(1)
        raise RuntimeError("boom")

    task = scheduler.every(0.01, flaky)
    await asyncio.sleep(0.06)
    task.cancel()

    assert len(runs) >= 2


@pytest.mark.asyncio
async def test_periodic_runs_never_overlap():
    scheduler = Scheduler()
    active = 0
    overlaps = 0

    async def slow():
        nonlocal active, overlaps
        active += 1
        if active > 1:
            overlaps += 1
        await asyncio.sleep(0.03)
        active -= 1

    task = scheduler.every(0.01, slow)
    await asyncio.sleep(0.12)
    task.cancel()

    assert overlaps == 0


def test_interval_must_be_positive():
    async def noop():
        return None

    async def build():
        Scheduler().every(0, noop)

    with pytest.raises(ValueError):
        asyncio.run(build())
