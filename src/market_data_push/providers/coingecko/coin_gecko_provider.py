"""CoinGecko market data source for spot prices, trending coins and metadata."""
import asyncio
import logging
import os
from datetime import datetime
from typing import Any

from market_data_push.providers.core import RateLimiter, SourceClientABC
from market_data_push.providers.core.utils import normalize_symbol, split_symbol
from market_data_push.providers.coingecko.models import (
    CoinGeckoCoinParams, CoinGeckoSimplePriceParams)
from market_data_push.schemas import CoinInfo, ExchangeQuote, TrendingCoin
from market_data_push.utils import parse_timestamp

logger = logging.getLogger(__name__)

# Canonical base asset -> CoinGecko id.
COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SUI": "sui",
    "SOL": "solana",
    "ADA": "cardano",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "ATOM": "cosmos",
}

BATCH_SIZE = 10
BATCH_PAUSE = 0.2


class CoinGeckoProvider(SourceClientABC):
    """Market data source for cryptocurrencies via CoinGecko API.

    Symbol notation: a canonical pair whose base asset is in COIN_IDS maps to
    that CoinGecko id (BTCUSDT -> bitcoin); anything else is lowercased and
    used as a CoinGecko id directly (e.g. "Bitcoin" -> bitcoin).

    CoinGecko is a spot aggregator: it has no funding rates.
    """

    name = "coingecko"
    BASE_URL = "https://api.coingecko.com/api/v3"
    PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"

    def __init__(
        self,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        *,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the CoinGecko source.

        Args:
            base_url: API root. Defaults to the Pro endpoint when an API key is set.
            rate_limiter: Limiter for CoinGecko. Defaults to the free tier, 50/min.
            api_key: CoinGecko API key. Defaults to COINGECKO_API_KEY env var.
            **kwargs: Forwarded to SourceClientABC (timeout, retries, transport, ...).
        """
        self._api_key = api_key or os.getenv("COINGECKO_API_KEY")
        headers: dict[str, str] = dict(kwargs.pop("headers", None) or {})
        if self._api_key:
            headers["x-cg-pro-api-key"] = self._api_key
        if base_url is None:
            base_url = self.PRO_BASE_URL if self._api_key else self.BASE_URL
        if rate_limiter is None:
            rate_limiter = RateLimiter(self.name, max_requests=50)
        super().__init__(base_url, rate_limiter, headers=headers, **kwargs)

    def translate_symbol(self, symbol: str) -> str:
        if symbol.upper() in COIN_IDS:
            return COIN_IDS[symbol.upper()]
        try:
            base, _ = split_symbol(symbol)
        except ValueError:
            return symbol.lower()
        return COIN_IDS.get(base, symbol.lower())

    async def _fetch_price(self, symbol: str) -> ExchangeQuote:
        coin_id = self.translate_symbol(symbol)
        data = await self._simple_price([coin_id])
        row = data.get(coin_id)
        if not row or row.get("usd") is None:
            raise self._not_found(symbol)
        vol = row.get("usd_24h_vol")
        return ExchangeQuote(
            source=self.name,
            symbol=coin_id if coin_id == symbol.lower() else normalize_symbol(symbol),
            price=float(row["usd"]),
            volume_24h=float(vol) if vol is not None else None,
            observed_at=parse_timestamp(row.get("last_updated_at")),
        )

    async def _simple_price(self, coin_ids: list[str]) -> dict[str, Any]:
        params = CoinGeckoSimplePriceParams().model_dump() | {"ids": ",".join(coin_ids)}
        return await self._get_json("/simple/price", params=params)

    async def get_simple_prices(self, coin_ids: list[str]) -> dict[str, float]:
        """USD price per CoinGecko id; ids without a price are left out. {} on failure."""
        ids = [c.lower() for c in coin_ids]
        try:
            data = await self._simple_price(ids)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to fetch coingecko simple prices for %s: %s", ids, exc)
            return {}
        return {
            cid: float(row["usd"])
            for cid, row in data.items()
            if isinstance(row, dict) and row.get("usd") is not None
        }

    async def get_trending_coins(self) -> list[TrendingCoin]:
        """Current CoinGecko trending list, in CoinGecko order. [] on failure."""
        try:
            data = await self._get_json("/search/trending")
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to fetch coingecko trending coins: %s", exc)
            return []
        coins = [
            self._trending_from_item(entry.get("item") or {})
            for entry in data.get("coins", [])
        ]
        logger.debug("Fetched %d trending coins", len(coins))
        return coins

    async def get_coin_info(self, coin_id: str) -> CoinInfo | None:
        """Detailed snapshot for one coin. None when unknown or on failure."""
        coin_id = coin_id.lower()
        try:
            data = await self._get_json(
                f"/coins/{coin_id}", params=CoinGeckoCoinParams().model_dump()
            )
            return self._coin_info_from_detail(data)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Failed to fetch coingecko coin info for %s: %s", coin_id, exc)
            return None

    async def get_batch_coin_info(self, coin_ids: list[str]) -> list[CoinInfo]:
        """Coin info for many ids, BATCH_SIZE concurrent requests at a time.

        Ids that fail are left out; order follows coin_ids.
        """
        results: list[CoinInfo] = []
        for start in range(0, len(coin_ids), BATCH_SIZE):
            batch = coin_ids[start:start + BATCH_SIZE]
            infos = await asyncio.gather(*(self.get_coin_info(cid) for cid in batch))
            results.extend(info for info in infos if info is not None)
            if start + BATCH_SIZE < len(coin_ids):
                await self._sleep(BATCH_PAUSE)
        return results

    def _trending_from_item(self, item: dict[str, Any]) -> TrendingCoin:
        """Build a TrendingCoin from a /search/trending 'item'."""
        return TrendingCoin(
            id=item["id"],
            name=item.get("name", item["id"]),
            symbol=item.get("symbol", ""),
            market_cap_rank=item.get("market_cap_rank"),
            price_btc=item.get("price_btc"),
            score=float(item.get("score") or 0),
            thumb=item.get("thumb"),
        )

    def _coin_info_from_detail(self, data: dict[str, Any]) -> CoinInfo:
        """Build a CoinInfo from a /coins/{id} response."""
        market = data.get("market_data") or {}

        def usd(key: str) -> float:
            value = (market.get(key) or {}).get("usd")
            return float(value) if value is not None else 0.0

        last_updated = data.get("last_updated")
        return CoinInfo(
            id=data["id"],
            symbol=data.get("symbol", ""),
            name=data.get("name", data["id"]),
            current_price=usd("current_price"),
            price_change_24h=float(market.get("price_change_24h") or 0),
            price_change_percentage_24h=float(
                market.get("price_change_percentage_24h") or 0
            ),
            market_cap=usd("market_cap"),
            market_cap_rank=data.get("market_cap_rank"),
            volume_24h=usd("total_volume"),
            high_24h=usd("high_24h"),
            low_24h=usd("low_24h"),
            last_updated=(
                datetime.fromisoformat(last_updated.replace("Z", "+00:00"))
                if last_updated
                else None
            ),
        )
