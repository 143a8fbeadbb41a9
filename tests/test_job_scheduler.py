from __future__ import annotations

import pytest

from page_monitor.scheduler import JobScheduler


async def _noop() -> None:
    return None


@pytest.mark.asyncio
async def test_interval_job_lifecycle() -> None:
    scheduler = JobScheduler()
    scheduler.start()
    try:
        scheduler.add_interval_job("tick", _noop, seconds=600, description="tick job")
        status = scheduler.get_job_status("tick")
        assert status is not None
        assert status["type"] == "interval"
        assert status["seconds"] == 600
        assert status["name"] == "tick job"
        assert status["next_run"] is not None

        # Re-adding replaces instead of duplicating.
        scheduler.add_interval_job("tick", _noop, seconds=900)
        assert list(scheduler.jobs) == ["tick"]
        assert scheduler.get_job_status("tick")["seconds"] == 900

        assert scheduler.remove_job("tick") is True
        assert scheduler.remove_job("tick") is False
        assert scheduler.get_job_status("tick") is None
    finally:
        scheduler.stop()

    assert scheduler.running is False


@pytest.mark.asyncio
async def test_start_twice_and_stop_twice_are_harmless() -> None:
    scheduler = JobScheduler()
    scheduler.stop()
    scheduler.start()
    scheduler.start()
    assert scheduler.running is True
    scheduler.stop()
    scheduler.stop()
    assert scheduler.running is False


def test_adding_job_requires_running_scheduler() -> None:
    with pytest.raises(RuntimeError):
        JobScheduler().add_interval_job("tick", _noop, seconds=5)
