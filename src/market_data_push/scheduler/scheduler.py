"""Single-process cron scheduler with a global concurrency ceiling.

One ticker loop re-evaluates every job's ``next_run`` each tick and fires the
due ones as asyncio tasks. The registry is a plain id -> ScheduledJob mapping.
"""
import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from market_data_push.scheduler.cron import CronSchedule
from market_data_push.scheduler.models import JobResult, JobState, ScheduledJob

logger = logging.getLogger(__name__)


class JobNotFoundError(KeyError):
    """No job is registered under the given id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job '{self.job_id}' not found"


def resolve_timezone(name: str) -> tzinfo:
    """UTC without touching the tz database; anything else via zoneinfo."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class TaskScheduler:
    """Registry of periodic jobs plus the loop that fires them.

    Firing a job reserves a slot in the running set without any suspension
    point between the ceiling check and the add, so two jobs due on the same
    tick cannot both slip under the ceiling. A job still running when it is
    due again is skipped, as is any job fired while the ceiling is reached;
    skips are logged and do not count as failures.
    """

    def __init__(
        self,
        timezone_name: str = "UTC",
        max_concurrent_jobs: int = 5,
        *,
        tick_interval: float = 1.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be >= 1")
        self.tz = resolve_timezone(timezone_name)
        self.max_concurrent_jobs = max_concurrent_jobs
        self._tick_interval = tick_interval
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._jobs: dict[str, ScheduledJob] = {}
        self._schedules: dict[str, CronSchedule] = {}
        self._running: set[str] = set()
        self._inflight: set[asyncio.Task] = set()
        self._ticker: asyncio.Task | None = None

    # Registry

    def schedule_job(self, job: ScheduledJob) -> ScheduledJob:
        """Register ``job``, replacing (and first stopping) any job with the same id.

        Raises:
            CronSyntaxError: job.cron is not a valid expression.
        """
        schedule = CronSchedule.parse(job.cron)
        if job.id in self._jobs:
            logger.warning("Job %s already exists, replacing", job.id)
            self.unschedule_job(job.id)
        self._jobs[job.id] = job
        self._schedules[job.id] = schedule
        job.next_run = schedule.next_after(self._clock()) if job.enabled else None
        logger.info(
            "Job scheduled: %s (%s) cron='%s' enabled=%s",
            job.id, job.name, job.cron, job.enabled,
        )
        return job

    def unschedule_job(self, job_id: str) -> None:
        """Stop firing and remove a job. A firing already in flight runs to completion."""
        job = self.get_job(job_id)
        job.next_run = None
        del self._jobs[job_id]
        del self._schedules[job_id]
        logger.info("Job unscheduled: %s", job_id)

    def get_job(self, job_id: str) -> ScheduledJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def pause_job(self, job_id: str) -> None:
        job = self.get_job(job_id)
        job.enabled = False
        job.next_run = None
        logger.info("Job paused: %s", job_id)

    def resume_job(self, job_id: str) -> None:
        """Re-enable a paused job; its consecutive error count starts again from zero."""
        job = self.get_job(job_id)
        job.enabled = True
        job.consecutive_errors = 0
        job.next_run = self._schedules[job_id].next_after(self._clock())
        logger.info("Job resumed: %s, next run %s", job_id, job.next_run)

    def job_state(self, job_id: str) -> JobState:
        job = self.get_job(job_id)
        if job_id in self._running:
            return JobState.RUNNING
        return JobState.IDLE if job.enabled else JobState.PAUSED

    def get_job_status(self) -> list[dict]:
        """Snapshot of every registered job, for logs and the ops API."""
        status = []
        for job in self._jobs.values():
            last = job.last_result
            status.append({
                "id": job.id,
                "name": job.name,
                "cron": job.cron,
                "state": self.job_state(job.id).value,
                "enabled": job.enabled,
                "running": job.id in self._running,
                "consecutive_errors": job.consecutive_errors,
                "max_retries": job.max_retries,
                "next_run": job.next_run.isoformat() if job.next_run else None,
                "last_run": job.last_run.isoformat() if job.last_run else None,
                "last_success": None if last is None or last.skipped else last.success,
                "last_error": last.error if last else None,
            })
        return status

    @property
    def running_count(self) -> int:
        return len(self._running)

    # Firing

    def _reserve(self, job: ScheduledJob) -> str | None:
        """Check-and-add to the running set; returns the skip reason, if any."""
        if job.id in self._running:
            return "already running"
        if len(self._running) >= self.max_concurrent_jobs:
            return "max concurrent jobs reached"
        self._running.add(job.id)
        return None

    def _skip(self, job: ScheduledJob, reason: str) -> JobResult:
        logger.warning("Skipping job %s: %s", job.id, reason)
        return JobResult(job_id=job.id, success=False, skipped=True, error=reason)

    async def _execute(self, job: ScheduledJob) -> JobResult:
        """Run a job that already holds a running slot; always releases it."""
        started = time.monotonic()
        job.last_run = self._clock()
        try:
            logger.info("Executing job %s (%s)", job.id, job.name)
            await job.handler()
        except Exception as exc:  # pylint: disable=broad-except
            duration = time.monotonic() - started
            job.consecutive_errors += 1
            result = JobResult(
                job_id=job.id,
                success=False,
                duration=duration,
                error=str(exc) or type(exc).__name__,
            )
            logger.error(
                "Job %s failed after %.2fs (%d/%d): %s",
                job.id, duration, job.consecutive_errors, job.max_retries, result.error,
            )
            if job.enabled and job.consecutive_errors >= job.max_retries:
                logger.error(
                    "Job %s disabled after %d consecutive errors",
                    job.id, job.consecutive_errors,
                )
                job.enabled = False
                job.next_run = None
        else:
            duration = time.monotonic() - started
            job.consecutive_errors = 0
            result = JobResult(job_id=job.id, success=True, duration=duration)
            logger.info("Job %s completed in %.2fs", job.id, duration)
        finally:
            self._running.discard(job.id)
        job.last_result = result
        return result

    async def run_job(self, job_id: str) -> JobResult:
        """Fire a job now and wait for it. Paused jobs are skipped, not run."""
        job = self.get_job(job_id)
        if not job.enabled:
            return self._skip(job, "job is paused")
        reason = self._reserve(job)
        if reason is not None:
            return self._skip(job, reason)
        return await self._execute(job)

    def _fire(self, job: ScheduledJob) -> None:
        reason = self._reserve(job)
        if reason is not None:
            job.last_result = self._skip(job, reason)
            return
        task = asyncio.create_task(self._execute(job), name=f"job:{job.id}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def tick(self, now: datetime | None = None) -> list[str]:
        """Fire every enabled job whose next_run is due; returns the ids considered due.

        Must be called from a running event loop.
        """
        now = now or self._clock()
        due = []
        for job in list(self._jobs.values()):
            if not job.enabled or job.next_run is None or job.next_run > now:
                continue
            job.next_run = self._schedules[job.id].next_after(now)
            due.append(job.id)
            self._fire(job)
        return due

    async def _tick_loop(self) -> None:
        while True:
            try:
                self.tick()
            except Exception:  # pylint: disable=broad-except
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(self._tick_interval)

    # Lifecycle

    def start(self) -> None:
        """Start the ticker loop on the running event loop."""
        if self._ticker is not None and not self._ticker.done():
            return
        now = self._clock()
        for job in self._jobs.values():
            if job.enabled and job.next_run is None:
                job.next_run = self._schedules[job.id].next_after(now)
        self._ticker = asyncio.create_task(self._tick_loop(), name="scheduler-ticker")
        logger.info(
            "Scheduler started with %d jobs (tz=%s, max concurrent=%d)",
            len(self._jobs), self.tz, self.max_concurrent_jobs,
        )

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    async def drain(self) -> None:
        """Wait until every fired job has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def stop(self) -> None:
        """Stop firing new jobs and wait for in-flight ones; nothing is cancelled mid-run."""
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        await self.drain()
        logger.info("All scheduled jobs stopped")
