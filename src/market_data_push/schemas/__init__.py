"""Pydantic schemas for runtime use. Not persisted to DB."""
from datetime import datetime

from pydantic import BaseModel, Field

from market_data_push.utils import utcnow


class ExchangeQuote(BaseModel):
    """Last traded price of a symbol on one source."""

    source: str
    symbol: str  # canonical notation, e.g. BTCUSDT
    price: float
    volume_24h: float | None = None
    observed_at: datetime = Field(default_factory=utcnow)


class FundingRate(BaseModel):
    """Perpetual funding rate of a symbol on one source."""

    source: str
    symbol: str
    funding_rate: float  # fraction, e.g. 0.0001 == 0.01%
    next_funding_time: datetime | None = None
    observed_at: datetime = Field(default_factory=utcnow)


class PriceComparison(BaseModel):
    """Cross-source comparison for one symbol.

    best is the lowest price, worst the highest; ties go to the first source
    in iteration order.
    """

    symbol: str
    quotes: list[ExchangeQuote]
    best: ExchangeQuote
    worst: ExchangeQuote
    price_difference: float
    price_difference_percentage: float
    funding_rates: list[FundingRate] | None = None
    computed_at: datetime = Field(default_factory=utcnow)


class TrendingCoin(BaseModel):
    """Entry of the CoinGecko trending list."""

    id: str
    name: str
    symbol: str
    market_cap_rank: int | None = None
    price_btc: float | None = None
    score: float = 0.0
    thumb: str | None = None


class CoinInfo(BaseModel):
    """Detailed snapshot of a single coin (CoinGecko /coins/{id})."""

    id: str
    symbol: str
    name: str
    current_price: float
    price_change_24h: float = 0.0
    price_change_percentage_24h: float = 0.0
    market_cap: float = 0.0
    market_cap_rank: int | None = None
    volume_24h: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0
    last_updated: datetime | None = None


class UserCreate(BaseModel):
    """Body of POST /users."""

    user_id: int
    chat_id: int
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    language_code: str | None = None


class SubscriptionCreate(BaseModel):
    """Body of POST /subscriptions."""

    user_id: int
    category: str
    symbols: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    schedule: str = "0 * * * *"
    price_threshold: float | None = None


class AlertCreate(BaseModel):
    """Body of POST /alerts."""

    user_id: int
    symbol: str = Field(min_length=1)
    target_price: float = Field(gt=0)
    condition: str


__all__ = [
    "AlertCreate",
    "CoinInfo",
    "ExchangeQuote",
    "FundingRate",
    "PriceComparison",
    "SubscriptionCreate",
    "TrendingCoin",
    "UserCreate",
]
