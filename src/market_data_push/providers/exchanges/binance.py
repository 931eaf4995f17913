"""Binance USDⓈ-M futures source."""
from market_data_push.providers.core import SourceClientABC
from market_data_push.providers.core.utils import normalize_symbol, to_float
from market_data_push.schemas import ExchangeQuote, FundingRate
from market_data_push.utils import parse_timestamp_ms


class BinanceClient(SourceClientABC):
    """Prices and funding rates from the Binance futures API.

    Symbol notation is the canonical concatenated pair (BTCUSDT -> BTCUSDT).
    """

    name = "binance"
    supports_funding_rates = True
    BASE_URL = "https://fapi.binance.com"

    def translate_symbol(self, symbol: str) -> str:
        return normalize_symbol(symbol)

    async def _fetch_price(self, symbol: str) -> ExchangeQuote:
        data = await self._get_json(
            "/fapi/v1/ticker/24hr", params={"symbol": self.translate_symbol(symbol)}
        )
        price = to_float(data.get("lastPrice")) if data else None
        if price is None:
            raise self._not_found(symbol)
        return ExchangeQuote(
            source=self.name,
            symbol=normalize_symbol(symbol),
            price=price,
            volume_24h=to_float(data.get("volume")),
        )

    async def _fetch_funding_rate(self, symbol: str) -> FundingRate:
        data = await self._get_json(
            "/fapi/v1/premiumIndex", params={"symbol": self.translate_symbol(symbol)}
        )
        rate = to_float(data.get("lastFundingRate")) if data else None
        if rate is None:
            raise self._not_found(symbol)
        return FundingRate(
            source=self.name,
            symbol=normalize_symbol(symbol),
            funding_rate=rate,
            next_funding_time=parse_timestamp_ms(data.get("nextFundingTime")),
        )
