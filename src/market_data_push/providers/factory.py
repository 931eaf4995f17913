"""Factory for source clients selected by configuration."""
import logging
from collections.abc import Iterable

import httpx

from market_data_push.config import SourceSettings
from market_data_push.providers.coingecko import CoinGeckoProvider
from market_data_push.providers.core import RateLimiter, SourceClientABC
from market_data_push.providers.exchanges import (BinanceClient, BybitClient,
                                                  OKXClient)

logger = logging.getLogger(__name__)

SOURCE_CLIENTS: dict[str, type[SourceClientABC]] = {
    "binance": BinanceClient,
    "okx": OKXClient,
    "bybit": BybitClient,
    "coingecko": CoinGeckoProvider,
}


def create_source_client(
    source: SourceSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SourceClientABC:
    """Create a client for one configured source with its own RateLimiter.

    Args:
        source: Name, base URL override, requests-per-minute and optional API key.
        transport: Optional httpx transport shared by the client (tests).

    Raises:
        ValueError: the source name has no registered client.
    """
    client_cls = SOURCE_CLIENTS.get(source.name)
    if client_cls is None:
        raise ValueError(
            f"Unknown source: {source.name}. Available: {', '.join(SOURCE_CLIENTS)}"
        )
    limiter = RateLimiter(source.name, max_requests=source.rate_limit)
    kwargs = {"transport": transport}
    if source.api_key and client_cls is CoinGeckoProvider:
        kwargs["api_key"] = source.api_key
    return client_cls(source.base_url, limiter, **kwargs)


def build_source_clients(
    sources: Iterable[SourceSettings],
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, SourceClientABC]:
    """Create one client per configured source, keyed by source name."""
    clients = {
        source.name: create_source_client(source, transport=transport)
        for source in sources
    }
    logger.info("Source clients ready: %s", ", ".join(clients))
    return clients
