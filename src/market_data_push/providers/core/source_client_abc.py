"""Abstract base class for market data source clients."""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from tenacity import (AsyncRetrying, before_sleep_log, retry_if_exception,
                      stop_after_attempt, wait_fixed)

from market_data_push.providers.core.exceptions import (ErrorKind,
                                                        RateLimitExceeded,
                                                        SourceUnavailable,
                                                        SymbolNotFound,
                                                        classify_source_error)
from market_data_push.providers.core.rate_limiter import RateLimiter
from market_data_push.schemas import ExchangeQuote, FundingRate

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 0.5
USER_AGENT = "market-data-push/0.1"


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, Exception) and classify_source_error(exc) is ErrorKind.TRANSIENT


class SourceClientABC(ABC):
    """Base interface for all market data sources.

    Each source implements ``_fetch_price`` and, if it lists derivatives,
    ``_fetch_funding_rate``. The public ``fetch_*`` methods wrap them so that
    every failure resolves to ``None`` and is logged with source and symbol;
    nothing raises past this layer.

    Every HTTP attempt takes a slot from the source's RateLimiter first.
    Transient failures (transport errors, timeouts, 5xx) are retried
    ``retries`` more times with a fixed backoff. A 429 is not retried.
    """

    name: str = "source"
    supports_funding_rates: bool = False
    BASE_URL: str = ""

    def __init__(
        self,
        base_url: str | None,
        rate_limiter: RateLimiter,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the source client.

        Args:
            base_url: Root URL of the provider's REST API; None uses BASE_URL.
            rate_limiter: Limiter owned by the process for this source.
            timeout: Per-request timeout in seconds.
            retries: Extra attempts after a transient failure.
            retry_backoff: Fixed pause between attempts in seconds.
            headers: Extra request headers (e.g. API keys).
            transport: Optional httpx transport (tests use httpx.MockTransport).
            sleep: Sleep function used for backoff.
        """
        self.rate_limiter = rate_limiter
        self._retries = retries
        self._retry_backoff = retry_backoff
        self._sleep = sleep
        all_headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        all_headers.update(headers or {})
        self._client = httpx.AsyncClient(
            base_url=base_url or self.BASE_URL,
            headers=all_headers,
            timeout=timeout,
            transport=transport,
        )

    @abstractmethod
    def translate_symbol(self, symbol: str) -> str:
        """Convert a canonical symbol (e.g. BTCUSDT) into provider notation."""

    @abstractmethod
    async def _fetch_price(self, symbol: str) -> ExchangeQuote:
        """Fetch the last price. May raise; callers use fetch_price."""

    async def _fetch_funding_rate(self, symbol: str) -> FundingRate:
        """Fetch the current funding rate. Override in derivatives sources."""
        raise NotImplementedError(f"{self.name} has no funding rates")

    async def fetch_price(self, symbol: str) -> ExchangeQuote | None:
        """Fetch the last price for a canonical symbol, or None on any failure."""
        return await self._guard("price", symbol, self._fetch_price)

    async def fetch_funding_rate(self, symbol: str) -> FundingRate | None:
        """Fetch the funding rate for a canonical symbol, or None on any failure."""
        if not self.supports_funding_rates:
            return None
        return await self._guard("funding rate", symbol, self._fetch_funding_rate)

    async def _guard(
        self,
        what: str,
        symbol: str,
        fetch: Callable[[str], Awaitable[T]],
    ) -> T | None:
        try:
            return await fetch(symbol)
        except RateLimitExceeded:
            logger.warning(
                "%s rate limit exceeded (HTTP 429) fetching %s for %s",
                self.name, what, symbol,
            )
        except SymbolNotFound as exc:
            logger.warning("%s has no %s for %s: %s", self.name, what, symbol, exc)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error(
                "Failed to fetch %s %s for %s: %s", self.name, what, symbol, exc
            )
        return None

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET path and decode JSON, with rate limiting and bounded retries.

        Raises:
            RateLimitExceeded: the source answered 429.
            SourceUnavailable: transient failures exhausted all attempts.
            httpx.HTTPStatusError: non-retryable 4xx.
        """
        attempts = self._retries + 1
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self._retry_backoff),
            retry=retry_if_exception(_is_transient),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self.rate_limiter.acquire()
                    response = await self._client.get(path, params=params)
                    response.raise_for_status()
                    return response.json()
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            kind = classify_source_error(exc)
            if kind is ErrorKind.RATE_LIMIT:
                raise RateLimitExceeded(self.name, f"429 on {path}") from exc
            if kind is ErrorKind.TRANSIENT:
                raise SourceUnavailable(
                    self.name, f"{path} failed after {attempts} attempts: {exc}"
                ) from exc
            raise
        raise SourceUnavailable(self.name, f"{path} failed")  # pragma: no cover

    def _not_found(self, symbol: str) -> SymbolNotFound:
        return SymbolNotFound(self.name, f"no data for '{symbol}'")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "SourceClientABC":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Async context manager exit - calls close()."""
        await self.close()
