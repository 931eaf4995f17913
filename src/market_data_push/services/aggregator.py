"""Cross-source price comparison and funding-rate aggregation.

Each source is queried concurrently; a source that fails is dropped from the
result instead of failing the whole call. Only when every source fails does a
comparison come back as None.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence

from market_data_push.providers.core import SourceClientABC
from market_data_push.providers.core.utils import normalize_symbol
from market_data_push.schemas import ExchangeQuote, FundingRate, PriceComparison

logger = logging.getLogger(__name__)

BATCH_PAUSE = 0.1


class PriceAggregator:
    """Fan out fetches over a set of source clients and merge the results."""

    def __init__(
        self,
        clients: Mapping[str, SourceClientABC],
        default_sources: Sequence[str] | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the aggregator.

        Args:
            clients: Source clients keyed by source name.
            default_sources: Sources used when a call does not name any.
                Defaults to every client, in mapping order.
            sleep: Sleep function used between batch items.
        """
        self._clients = dict(clients)
        self._default_sources = list(default_sources or self._clients)
        self._sleep = sleep

    @property
    def sources(self) -> list[str]:
        return list(self._clients)

    def _resolve(self, sources: Sequence[str] | None) -> list[SourceClientABC]:
        resolved: list[SourceClientABC] = []
        for name in sources or self._default_sources:
            client = self._clients.get(name.lower())
            if client is None:
                logger.warning("Unknown source '%s' skipped", name)
                continue
            if client not in resolved:
                resolved.append(client)
        return resolved

    async def _settle(
        self,
        what: str,
        symbol: str,
        clients: list[SourceClientABC],
        fetches: list[Awaitable[object]],
    ) -> list:
        """Gather fetches and keep successful, non-empty results in source order."""
        results = await asyncio.gather(*fetches, return_exceptions=True)
        settled = []
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.warning(
                    "%s %s for %s failed: %s", client.name, what, symbol, result
                )
                continue
            if result is not None:
                settled.append(result)
        return settled

    async def compare_across_sources(
        self,
        symbol: str,
        sources: Sequence[str] | None = None,
        *,
        include_funding_rates: bool = False,
    ) -> PriceComparison | None:
        """Compare the last price of ``symbol`` across sources.

        best is the lowest price and worst the highest; on ties the first
        source in iteration order wins. Returns None when no source answered.
        """
        symbol = normalize_symbol(symbol)
        clients = self._resolve(sources)
        if not clients:
            return None

        quotes_call = self._settle(
            "price", symbol, clients, [c.fetch_price(symbol) for c in clients]
        )
        if include_funding_rates:
            quotes, funding = await asyncio.gather(
                quotes_call, self.aggregate_funding_rates(symbol, sources)
            )
        else:
            quotes, funding = await quotes_call, []

        if not quotes:
            logger.warning("No source returned a price for %s", symbol)
            return None
        return build_comparison(symbol, quotes, funding or None)

    async def aggregate_funding_rates(
        self,
        symbol: str,
        sources: Sequence[str] | None = None,
    ) -> list[FundingRate]:
        """Funding rates for ``symbol`` from every source that has one (may be empty)."""
        symbol = normalize_symbol(symbol)
        clients = [c for c in self._resolve(sources) if c.supports_funding_rates]
        return await self._settle(
            "funding rate",
            symbol,
            clients,
            [c.fetch_funding_rate(symbol) for c in clients],
        )

    async def batch_compare(
        self,
        symbols: Sequence[str],
        sources: Sequence[str] | None = None,
        *,
        include_funding_rates: bool = False,
    ) -> list[PriceComparison]:
        """Compare several symbols one after another; symbols with no result are left out."""
        comparisons: list[PriceComparison] = []
        for index, symbol in enumerate(symbols):
            comparison = await self.compare_across_sources(
                symbol, sources, include_funding_rates=include_funding_rates
            )
            if comparison is not None:
                comparisons.append(comparison)
            if index < len(symbols) - 1:
                await self._sleep(BATCH_PAUSE)
        return comparisons

    def get_rate_limit_stats(self) -> list[dict]:
        """Current window usage of every source's limiter."""
        return [client.rate_limiter.stats() for client in self._clients.values()]


def build_comparison(
    symbol: str,
    quotes: list[ExchangeQuote],
    funding_rates: list[FundingRate] | None = None,
) -> PriceComparison:
    """Derive best/worst and the spread from a non-empty list of quotes."""
    best = min(quotes, key=lambda q: q.price)
    worst = max(quotes, key=lambda q: q.price)
    difference = worst.price - best.price
    percentage = difference / best.price * 100 if best.price > 0 else 0.0
    return PriceComparison(
        symbol=symbol,
        quotes=quotes,
        best=best,
        worst=worst,
        price_difference=difference,
        price_difference_percentage=percentage,
        funding_rates=funding_rates,
    )
