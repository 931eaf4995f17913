"""Exchange (derivatives) data sources."""
from market_data_push.providers.exchanges.binance import BinanceClient
from market_data_push.providers.exchanges.bybit import BybitClient
from market_data_push.providers.exchanges.okx import OKXClient

__all__ = ["BinanceClient", "BybitClient", "OKXClient"]
