"""Market data sources: exchanges (prices, funding rates) and CoinGecko."""
from market_data_push.providers.coingecko import CoinGeckoProvider
from market_data_push.providers.core import RateLimiter, SourceClientABC
from market_data_push.providers.exchanges import (BinanceClient, BybitClient,
                                                  OKXClient)
from market_data_push.providers.factory import (SOURCE_CLIENTS,
                                                build_source_clients,
                                                create_source_client)

__all__ = [
    "BinanceClient",
    "BybitClient",
    "CoinGeckoProvider",
    "OKXClient",
    "RateLimiter",
    "SOURCE_CLIENTS",
    "SourceClientABC",
    "build_source_clients",
    "create_source_client",
]
