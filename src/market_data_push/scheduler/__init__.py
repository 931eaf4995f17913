"""Cron scheduler for the push jobs."""
from market_data_push.scheduler.cron import CronSchedule, CronSyntaxError
from market_data_push.scheduler.models import (JobHandler, JobResult, JobState,
                                               ScheduledJob)
from market_data_push.scheduler.scheduler import (JobNotFoundError,
                                                  TaskScheduler,
                                                  resolve_timezone)

__all__ = [
    "CronSchedule",
    "CronSyntaxError",
    "JobHandler",
    "JobNotFoundError",
    "JobResult",
    "JobState",
    "ScheduledJob",
    "TaskScheduler",
    "resolve_timezone",
]
