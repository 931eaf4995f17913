"""Handlers for the default scheduled push jobs."""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from market_data_push.db.models import Category
from market_data_push.db.store import SubscriptionStore
from market_data_push.providers.coingecko import CoinGeckoProvider
from market_data_push.scheduler.models import ScheduledJob
from market_data_push.services.aggregator import PriceAggregator
from market_data_push.services.alerts import AlertEvaluator
from market_data_push.services.broadcast import BroadcastDispatcher
from market_data_push.services.formatter import (format_coin_info,
                                                 format_funding_rates,
                                                 format_price_comparison,
                                                 format_trending_coins)

logger = logging.getLogger(__name__)

TRENDING_LIMIT = 10
COMPARISON_PAUSE = 1.0
FUNDING_PAUSE = 0.5
PRICES_PAUSE = 0.5


class PushJobs:
    """The job handlers run by the scheduler.

    Broadcast handlers return early, without fetching anything, when the
    category has no active subscriber. Per-symbol failures inside a handler
    are logged and skipped; store errors propagate and fail the job.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        aggregator: PriceAggregator,
        coingecko: CoinGeckoProvider,
        dispatcher: BroadcastDispatcher,
        alert_evaluator: AlertEvaluator,
        *,
        tracked_symbols: Sequence[str] = ("BTCUSDT", "ETHUSDT", "SUIUSDT"),
        tracked_coin_ids: Sequence[str] = ("bitcoin", "ethereum", "sui"),
        comparison_sources: Sequence[str] | None = None,
        history_retention_days: int = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._aggregator = aggregator
        self._coingecko = coingecko
        self._dispatcher = dispatcher
        self._alert_evaluator = alert_evaluator
        self._tracked_symbols = list(tracked_symbols)
        self._tracked_coin_ids = list(tracked_coin_ids)
        self._comparison_sources = list(comparison_sources) if comparison_sources else None
        self._history_retention_days = history_retention_days
        self._sleep = sleep

    async def _has_subscribers(self, category: Category) -> bool:
        if await asyncio.to_thread(self._store.get_active_subscriptions, category):
            return True
        logger.debug("No active %s subscribers, skipping", category.value)
        return False

    async def push_trending_coins(self) -> None:
        if not await self._has_subscribers(Category.TRENDING):
            return
        coins = await self._coingecko.get_trending_coins()
        if not coins:
            return
        await self._dispatcher.broadcast(
            Category.TRENDING, format_trending_coins(coins[:TRENDING_LIMIT])
        )

    async def push_price_comparison(self) -> None:
        if not await self._has_subscribers(Category.COMPARISON):
            return
        for symbol in self._tracked_symbols:
            comparison = await self._aggregator.compare_across_sources(
                symbol, self._comparison_sources
            )
            if comparison is None:
                logger.warning("Skipping %s comparison: no source answered", symbol)
                continue
            await self._dispatcher.broadcast(
                Category.COMPARISON, format_price_comparison(comparison)
            )
            await self._sleep(COMPARISON_PAUSE)

    async def push_funding_rates(self) -> None:
        if not await self._has_subscribers(Category.FUNDING_RATES):
            return
        rates = []
        for symbol in self._tracked_symbols:
            rates.extend(
                await self._aggregator.aggregate_funding_rates(
                    symbol, self._comparison_sources
                )
            )
            await self._sleep(FUNDING_PAUSE)
        if rates:
            await self._dispatcher.broadcast(
                Category.FUNDING_RATES, format_funding_rates(rates)
            )

    async def push_crypto_prices(self) -> None:
        if not await self._has_subscribers(Category.PRICES):
            return
        coins = await self._coingecko.get_batch_coin_info(self._tracked_coin_ids)
        for coin in coins:
            await self._dispatcher.broadcast(Category.PRICES, format_coin_info(coin))
            await self._sleep(PRICES_PAUSE)

    async def check_price_alerts(self) -> None:
        await self._alert_evaluator.evaluate()

    async def cleanup_old_records(self) -> None:
        await asyncio.to_thread(
            self._store.clean_old_records, self._history_retention_days
        )

    def default_jobs(self) -> list[ScheduledJob]:
        """The built-in job table: id, cron, handler and retry budget."""
        return [
            ScheduledJob(
                id="trending_coins_hourly",
                name="Trending coins push",
                cron="0 * * * *",
                handler=self.push_trending_coins,
                max_retries=3,
            ),
            ScheduledJob(
                id="price_comparison_hourly",
                name="Price comparison push",
                cron="0 * * * *",
                handler=self.push_price_comparison,
                max_retries=3,
            ),
            ScheduledJob(
                id="funding_rates_every_4h",
                name="Funding rates push",
                cron="0 */4 * * *",
                handler=self.push_funding_rates,
                max_retries=3,
            ),
            ScheduledJob(
                id="crypto_prices_hourly",
                name="Crypto prices push",
                cron="0 * * * *",
                handler=self.push_crypto_prices,
                max_retries=3,
            ),
            ScheduledJob(
                id="check_price_alerts",
                name="Price alert check",
                cron="*/5 * * * *",
                handler=self.check_price_alerts,
                max_retries=3,
            ),
            ScheduledJob(
                id="cleanup_old_records",
                name="Push history cleanup",
                cron="0 0 * * *",
                handler=self.cleanup_old_records,
                max_retries=1,
            ),
        ]
