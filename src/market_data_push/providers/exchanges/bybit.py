"""Bybit linear perpetual source."""
from typing import Any

from market_data_push.providers.core import SourceClientABC
from market_data_push.providers.core.utils import normalize_symbol, to_float
from market_data_push.schemas import ExchangeQuote, FundingRate


class BybitClient(SourceClientABC):
    """Prices and funding rates from the Bybit v5 API (category=linear).

    Symbol notation is the canonical concatenated pair (BTCUSDT -> BTCUSDT).
    Bybit only exposes settled funding via /funding/history; the latest
    settlement is used and next_funding_time is left empty.
    """

    name = "bybit"
    supports_funding_rates = True
    BASE_URL = "https://api.bybit.com"

    def translate_symbol(self, symbol: str) -> str:
        return normalize_symbol(symbol)

    def _first_row(self, payload: Any, symbol: str) -> dict[str, Any]:
        result = payload.get("result") if isinstance(payload, dict) else None
        rows = (result or {}).get("list")
        if not rows:
            raise self._not_found(symbol)
        return rows[0]

    async def _fetch_price(self, symbol: str) -> ExchangeQuote:
        payload = await self._get_json(
            "/v5/market/tickers",
            params={"category": "linear", "symbol": self.translate_symbol(symbol)},
        )
        row = self._first_row(payload, symbol)
        price = to_float(row.get("lastPrice"))
        if price is None:
            raise self._not_found(symbol)
        return ExchangeQuote(
            source=self.name,
            symbol=normalize_symbol(symbol),
            price=price,
            volume_24h=to_float(row.get("volume24h")),
        )

    async def _fetch_funding_rate(self, symbol: str) -> FundingRate:
        payload = await self._get_json(
            "/v5/market/funding/history",
            params={
                "category": "linear",
                "symbol": self.translate_symbol(symbol),
                "limit": 1,
            },
        )
        row = self._first_row(payload, symbol)
        rate = to_float(row.get("fundingRate"))
        if rate is None:
            raise self._not_found(symbol)
        return FundingRate(
            source=self.name,
            symbol=normalize_symbol(symbol),
            funding_rate=rate,
        )
