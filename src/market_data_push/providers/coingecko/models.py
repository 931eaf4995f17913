"""Models for CoinGecko source (API params)."""
from pydantic import BaseModel


class CoinGeckoSimplePriceParams(BaseModel):
    """Params for /simple/price. Merge with 'ids' at call site."""

    vs_currencies: str = "usd"
    include_24hr_vol: str = "true"
    include_24hr_change: str = "true"
    include_last_updated_at: str = "true"


class CoinGeckoCoinParams(BaseModel):
    """Params for /coins/{id}; only market data is needed."""

    localization: str = "false"
    tickers: str = "false"
    market_data: str = "true"
    community_data: str = "false"
    developer_data: str = "false"
    sparkline: str = "false"
