"""CoinGecko source."""
from market_data_push.providers.coingecko.coin_gecko_provider import (
    COIN_IDS, CoinGeckoProvider)

__all__ = ["COIN_IDS", "CoinGeckoProvider"]
