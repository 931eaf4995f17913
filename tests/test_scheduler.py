import asyncio
import logging
from datetime import datetime, timezone

import pytest

from market_data_push.scheduler import (CronSyntaxError, JobNotFoundError,
                                        JobState, ScheduledJob, TaskScheduler)

NOW = datetime(2024, 5, 1, 10, 7, tzinfo=timezone.utc)


def make_scheduler(max_jobs=5):
    return TaskScheduler("UTC", max_jobs, tick_interval=0.01, clock=lambda: NOW)


def job(job_id, handler, cron="*/15 * * * *", **kwargs):
    return ScheduledJob(id=job_id, name=job_id.title(), cron=cron, handler=handler, **kwargs)


async def ok():
    return None


async def boom():
    raise RuntimeError("upstream down")


def test_schedule_computes_next_run():
    scheduler = make_scheduler()
    scheduled = scheduler.schedule_job(job("prices", ok))
    assert scheduled.next_run == datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)
    assert scheduler.job_state("prices") is JobState.IDLE


def test_invalid_cron_is_rejected_before_registration():
    scheduler = make_scheduler()
    with pytest.raises(CronSyntaxError):
        scheduler.schedule_job(job("bad", ok, cron="61 * * * *"))
    with pytest.raises(JobNotFoundError):
        scheduler.get_job("bad")


def test_schedule_replaces_same_id():
    scheduler = make_scheduler()
    first = scheduler.schedule_job(job("prices", ok))
    second = scheduler.schedule_job(job("prices", ok, cron="0 * * * *"))
    assert scheduler.get_job("prices") is second
    assert first.next_run is None
    assert len(scheduler.get_job_status()) == 1


def test_unknown_job_operations_raise():
    scheduler = make_scheduler()
    for operation in (scheduler.pause_job, scheduler.resume_job, scheduler.unschedule_job):
        with pytest.raises(JobNotFoundError, match="Job 'ghost' not found"):
            operation("ghost")


@pytest.mark.asyncio
async def test_job_pauses_after_max_consecutive_failures(caplog):
    caplog.set_level(logging.ERROR)
    scheduler = make_scheduler()
    scheduler.schedule_job(job("funding", boom, max_retries=3))

    results = [await scheduler.run_job("funding") for _ in range(4)]

    assert [r.success for r in results[:3]] == [False, False, False]
    assert results[3].skipped
    failing = scheduler.get_job("funding")
    assert not failing.enabled
    assert failing.next_run is None
    assert failing.consecutive_errors == 3
    assert scheduler.job_state("funding") is JobState.PAUSED
    disabled = [r for r in caplog.records if "disabled after" in r.getMessage()]
    assert len(disabled) == 1


@pytest.mark.asyncio
async def test_success_resets_error_count():
    outcomes = iter([boom, boom, ok, boom])

    async def flaky():
        await next(outcomes)()

    scheduler = make_scheduler()
    scheduler.schedule_job(job("flaky", flaky))
    for _ in range(4):
        await scheduler.run_job("flaky")

    assert scheduler.get_job("flaky").consecutive_errors == 1
    assert scheduler.get_job("flaky").enabled


@pytest.mark.asyncio
async def test_resume_reenables_and_clears_errors():
    scheduler = make_scheduler()
    scheduler.schedule_job(job("funding", boom, max_retries=1))
    await scheduler.run_job("funding")
    assert not scheduler.get_job("funding").enabled

    scheduler.resume_job("funding")

    resumed = scheduler.get_job("funding")
    assert resumed.enabled
    assert resumed.consecutive_errors == 0
    assert resumed.next_run == datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_paused_job_is_not_fired_by_tick():
    calls = []

    async def handler():
        calls.append(1)

    scheduler = make_scheduler()
    scheduler.schedule_job(job("prices", handler))
    scheduler.pause_job("prices")

    assert scheduler.tick(datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)) == []
    assert (await scheduler.run_job("prices")).skipped
    assert calls == []


@pytest.mark.asyncio
async def test_ceiling_applies_to_jobs_due_on_same_tick():
    release = asyncio.Event()
    started = []

    def blocking(name):
        async def handler():
            started.append(name)
            await release.wait()
        return handler

    scheduler = make_scheduler(max_jobs=1)
    scheduler.schedule_job(job("a", blocking("a")))
    scheduler.schedule_job(job("b", blocking("b")))

    due = scheduler.tick(datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc))
    await asyncio.sleep(0)

    assert due == ["a", "b"]
    assert scheduler.running_count == 1
    assert started == ["a"]
    skipped = scheduler.get_job("b").last_result
    assert skipped.skipped
    assert skipped.error == "max concurrent jobs reached"
    # a skip is not a failure
    assert scheduler.get_job("b").consecutive_errors == 0

    release.set()
    await scheduler.drain()
    assert scheduler.running_count == 0
    assert scheduler.get_job("a").last_result.success


@pytest.mark.asyncio
async def test_running_job_is_not_started_twice():
    release = asyncio.Event()
    runs = []

    async def slow():
        runs.append(1)
        await release.wait()

    scheduler = make_scheduler()
    scheduler.schedule_job(job("slow", slow))
    scheduler.tick(datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc))
    await asyncio.sleep(0)

    again = await scheduler.run_job("slow")

    assert again.skipped
    assert again.error == "already running"
    assert scheduler.job_state("slow") is JobState.RUNNING
    release.set()
    await scheduler.drain()
    assert runs == [1]


@pytest.mark.asyncio
async def test_tick_advances_next_run():
    scheduler = make_scheduler()
    scheduler.schedule_job(job("prices", ok))
    due_at = datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)

    scheduler.tick(due_at)

    assert scheduler.get_job("prices").next_run == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)
    await scheduler.drain()
    assert scheduler.get_job("prices").last_result.success


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_jobs():
    finished = []

    async def slow():
        await asyncio.sleep(0.05)
        finished.append(1)

    scheduler = make_scheduler()
    scheduler.schedule_job(job("slow", slow))
    scheduler.start()
    assert scheduler.is_running
    scheduler.tick(datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc))

    await scheduler.stop()

    assert not scheduler.is_running
    assert finished == [1]
    assert scheduler.running_count == 0


def test_job_status_snapshot():
    scheduler = make_scheduler()
    scheduler.schedule_job(job("prices", ok))
    scheduler.schedule_job(job("cleanup", ok, cron="0 3 * * *", enabled=False))

    status = {entry["id"]: entry for entry in scheduler.get_job_status()}

    assert status["prices"]["state"] == "idle"
    assert status["prices"]["next_run"] == "2024-05-01T10:15:00+00:00"
    assert status["cleanup"]["state"] == "paused"
    assert status["cleanup"]["next_run"] is None
    assert status["cleanup"]["last_success"] is None


def test_rejects_zero_ceiling():
    with pytest.raises(ValueError):
        TaskScheduler(max_concurrent_jobs=0)
