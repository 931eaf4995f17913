"""OKX perpetual swap source."""
from typing import Any

from market_data_push.providers.core import SourceClientABC
from market_data_push.providers.core.utils import (normalize_symbol,
                                                   split_symbol, to_float)
from market_data_push.schemas import ExchangeQuote, FundingRate
from market_data_push.utils import parse_timestamp_ms


class OKXClient(SourceClientABC):
    """Prices and funding rates for OKX USDT-margined perpetual swaps.

    Symbol notation: the quote asset is split off the canonical pair and the
    swap suffix appended (BTCUSDT -> BTC-USDT-SWAP). Symbols already in
    hyphenated form are passed through unchanged.
    """

    name = "okx"
    supports_funding_rates = True
    BASE_URL = "https://www.okx.com"

    def translate_symbol(self, symbol: str) -> str:
        if "-" in symbol:
            return symbol.upper()
        base, quote = split_symbol(symbol)
        return f"{base}-{quote}-SWAP"

    def _first_row(self, payload: Any, symbol: str) -> dict[str, Any]:
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not rows:
            raise self._not_found(symbol)
        return rows[0]

    async def _fetch_price(self, symbol: str) -> ExchangeQuote:
        payload = await self._get_json(
            "/api/v5/market/ticker", params={"instId": self.translate_symbol(symbol)}
        )
        row = self._first_row(payload, symbol)
        price = to_float(row.get("last"))
        if price is None:
            raise self._not_found(symbol)
        return ExchangeQuote(
            source=self.name,
            symbol=normalize_symbol(symbol),
            price=price,
            volume_24h=to_float(row.get("vol24h")),
        )

    async def _fetch_funding_rate(self, symbol: str) -> FundingRate:
        payload = await self._get_json(
            "/api/v5/public/funding-rate",
            params={"instId": self.translate_symbol(symbol)},
        )
        row = self._first_row(payload, symbol)
        rate = to_float(row.get("fundingRate"))
        if rate is None:
            raise self._not_found(symbol)
        return FundingRate(
            source=self.name,
            symbol=normalize_symbol(symbol),
            funding_rate=rate,
            next_funding_time=parse_timestamp_ms(row.get("nextFundingTime")),
        )
