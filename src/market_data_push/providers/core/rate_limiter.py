"""Per-source fixed-window request throttle."""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Throttle requests to one source to ``max_requests`` per window.

    Keeps (window_start, count). ``acquire()`` resets the window once it has
    elapsed; when the window is full it suspends the caller until the window
    ends, then starts a new one. Callers queue on an ``asyncio.Lock``, so
    waiters for the same source are served in arrival order.

    One instance per source, created by the process and handed to the client;
    there is no module-level state.
    """

    def __init__(
        self,
        source: str,
        max_requests: int,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.source = source
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._window_start = clock()
        self._count = 0

    async def acquire(self) -> float:
        """Wait for a request slot and consume it.

        Returns:
            Seconds spent suspended (0.0 when a slot was free).
        """
        async with self._lock:
            now = self._clock()
            if now - self._window_start >= self.window_seconds:
                self._window_start = now
                self._count = 0

            waited = 0.0
            if self._count >= self.max_requests:
                waited = self.window_seconds - (now - self._window_start)
                logger.warning(
                    "%s rate limit reached (%d/%d), waiting %.2fs",
                    self.source,
                    self._count,
                    self.max_requests,
                    waited,
                )
                await self._sleep(waited)
                self._window_start = self._clock()
                self._count = 0

            self._count += 1
            return waited

    def stats(self) -> dict[str, float | int | str]:
        """Current window usage."""
        elapsed = self._clock() - self._window_start
        return {
            "source": self.source,
            "count": self._count,
            "limit": self.max_requests,
            "window_seconds": self.window_seconds,
            "reset_in": max(0.0, self.window_seconds - elapsed),
        }
