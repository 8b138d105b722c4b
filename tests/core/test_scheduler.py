# tests/core/test_scheduler.py

import asyncio
from unittest.mock import MagicMock

import pytest

from gpukube.core.scheduler import Scheduler


@pytest.mark.asyncio
async def test_add_job_schedules_correctly():
    """
    Tests that the Scheduler's add_job method correctly adds a task to the asyncio loop.
    """
    scheduler = Scheduler()
    mock_job = MagicMock()

    async def async_job():
        mock_job()

    scheduler.add_job(async_job, interval_seconds=3600)

    assert len(scheduler.tasks) == 1
    task = scheduler.tasks[0]
    assert not task.done()

    await scheduler.stop()
    assert task.cancelled() or task.done()
    assert scheduler.tasks == []


@pytest.mark.asyncio
async def test_first_run_waits_for_one_period():
    scheduler = Scheduler()
    mock_job = MagicMock()

    async def async_job():
        mock_job()

    scheduler.add_job(async_job, interval_seconds=0.2)
    await asyncio.sleep(0.05)
    assert mock_job.call_count == 0

    await asyncio.sleep(0.25)
    assert mock_job.call_count == 1
    await scheduler.stop()


@pytest.mark.asyncio
async def test_job_errors_do_not_stop_the_loop():
    scheduler = Scheduler()
    calls = []

    async def flaky_job():
        calls.append(1)
        raise RuntimeError("transient failure")

    scheduler.add_job(flaky_job, interval_seconds=0.05)
    await asyncio.sleep(0.28)
    await scheduler.stop()

    assert len(calls) >= 3


@pytest.mark.asyncio
async def test_runs_never_overlap():
    """A run slower than the period delays the next one instead of overlapping it."""
    scheduler = Scheduler()
    active = []
    max_active = []

    async def slow_job():
        active.append(1)
        max_active.append(len(active))
        await asyncio.sleep(0.12)
        active.pop()

    scheduler.add_job(slow_job, interval_seconds=0.05)
    await asyncio.sleep(0.5)
    await scheduler.stop()

    assert max_active
    assert max(max_active) == 1


@pytest.mark.asyncio
async def test_add_job_rejects_invalid_intervals():
    scheduler = Scheduler()

    async def async_job():
        pass

    with pytest.raises(ValueError):
        scheduler.add_job(async_job, interval_seconds=0)
    with pytest.raises(ValueError):
        scheduler.add_job(async_job, interval_seconds=-1.5)
    assert scheduler.tasks == []
