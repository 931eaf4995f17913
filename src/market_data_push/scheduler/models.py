"""In-memory job records owned by the TaskScheduler."""
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from market_data_push.utils import utcnow

JobHandler = Callable[[], Awaitable[object]]


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class JobResult:
    """Outcome of one firing. A skipped firing is neither success nor failure."""

    job_id: str
    success: bool
    duration: float = 0.0
    skipped: bool = False
    error: str | None = None
    finished_at: datetime = field(default_factory=utcnow)


@dataclass(eq=False)
class ScheduledJob:
    """A periodic job: cron schedule, handler and failure bookkeeping.

    ``consecutive_errors`` reaching ``max_retries`` pauses the job
    (``enabled`` becomes False) until it is resumed.
    """

    id: str
    name: str
    cron: str
    handler: JobHandler
    enabled: bool = True
    consecutive_errors: int = 0
    max_retries: int = 3
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_result: JobResult | None = None
