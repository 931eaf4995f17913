"""Source-layer exceptions and their classification.

None of these escape a source client's public methods; they drive the retry
loop and the log line written when a fetch resolves to ``None``.
"""
import asyncio
from enum import Enum

import httpx


class SourceError(Exception):
    """Base class for failures talking to an external market-data source."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class RateLimitExceeded(SourceError):
    """The source answered HTTP 429."""


class SourceUnavailable(SourceError):
    """Network error, timeout or 5xx after all retries."""


class SymbolNotFound(SourceError, ValueError):
    """The source answered but had no data for the symbol."""


class ErrorKind(str, Enum):
    """How the request pipeline treats a failure."""

    RATE_LIMIT = "rate_limit"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def classify_source_error(exc: Exception) -> ErrorKind:
    """Map an exception raised during a source request to an ErrorKind.

    Transient errors are retried; rate-limit and permanent errors are not.
    """
    if isinstance(exc, RateLimitExceeded):
        return ErrorKind.RATE_LIMIT
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return ErrorKind.RATE_LIMIT
        if status >= 500:
            return ErrorKind.TRANSIENT
        return ErrorKind.PERMANENT
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, SourceUnavailable):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT
