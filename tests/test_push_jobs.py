from datetime import timedelta

import pytest
from conftest import FakeSource

from market_data_push.db import Category, PushRecord, get_session
from market_data_push.schemas import CoinInfo, TrendingCoin
from market_data_push.scheduler import CronSchedule
from market_data_push.services import (AlertEvaluator, BroadcastDispatcher,
                                       PriceAggregator, PushJobs)
from market_data_push.utils import utcnow


class FakeCoinGecko(FakeSource):
    def __init__(self, trending=(), coins=()):
        super().__init__("coingecko", supports_funding=False)
        self.trending = list(trending)
        self.coins = list(coins)
        self.trending_calls = 0

    async def get_trending_coins(self):
        self.trending_calls += 1
        return self.trending

    async def get_batch_coin_info(self, coin_ids):
        return [c for c in self.coins if c.id in coin_ids]


@pytest.fixture
def sources():
    return {
        "binance": FakeSource("binance", prices={"BTCUSDT": 100.0}, funding={"BTCUSDT": 0.0001}),
        "okx": FakeSource("okx", prices={"BTCUSDT": 101.0}, funding={"BTCUSDT": 0.0002}),
    }


def make_jobs(store, channel, no_sleep, sources, coingecko=None, **kwargs):
    coingecko = coingecko or FakeCoinGecko()
    dispatcher = BroadcastDispatcher(store, channel, sleep=no_sleep)
    return PushJobs(
        store,
        PriceAggregator(sources, sleep=no_sleep),
        coingecko,
        dispatcher,
        AlertEvaluator(store, coingecko, channel, sleep=no_sleep),
        tracked_symbols=kwargs.pop("tracked_symbols", ["BTCUSDT"]),
        tracked_coin_ids=["bitcoin"],
        sleep=no_sleep,
        **kwargs,
    )


def subscribe(store, category, user_id=1):
    store.create_user(user_id, user_id * 10)
    store.add_subscription(user_id, category)


@pytest.mark.asyncio
async def test_no_subscribers_means_no_fetch(store, channel, no_sleep, sources):
    coingecko = FakeCoinGecko()
    jobs = make_jobs(store, channel, no_sleep, sources, coingecko)

    await jobs.push_trending_coins()
    await jobs.push_price_comparison()
    await jobs.push_funding_rates()
    await jobs.push_crypto_prices()

    assert coingecko.trending_calls == 0
    assert sources["binance"].price_calls == []
    assert channel.sent == []


@pytest.mark.asyncio
async def test_trending_is_limited_to_ten(store, channel, no_sleep, sources):
    subscribe(store, Category.TRENDING)
    coins = [TrendingCoin(id=f"c{i}", name=f"Coin{i}", symbol=f"c{i}") for i in range(15)]
    jobs = make_jobs(store, channel, no_sleep, sources, FakeCoinGecko(trending=coins))

    await jobs.push_trending_coins()

    assert len(channel.sent) == 1
    text = channel.sent[0][1]
    assert "Coin9" in text
    assert "Coin10" not in text


@pytest.mark.asyncio
async def test_comparison_broadcast_per_symbol(store, channel, no_sleep, sources):
    subscribe(store, Category.COMPARISON)
    jobs = make_jobs(
        store, channel, no_sleep, sources, tracked_symbols=["BTCUSDT", "NOPEUSDT"]
    )

    await jobs.push_price_comparison()

    assert len(channel.sent) == 1
    assert "BTCUSDT price comparison" in channel.sent[0][1]
    assert 1.0 in no_sleep.calls


@pytest.mark.asyncio
async def test_funding_rates_sent_in_one_message(store, channel, no_sleep, sources):
    subscribe(store, Category.FUNDING_RATES)
    jobs = make_jobs(store, channel, no_sleep, sources)

    await jobs.push_funding_rates()

    assert len(channel.sent) == 1
    assert "binance" in channel.sent[0][1] and "okx" in channel.sent[0][1]


@pytest.mark.asyncio
async def test_crypto_prices_one_message_per_coin(store, channel, no_sleep, sources):
    subscribe(store, Category.PRICES)
    coin = CoinInfo(id="bitcoin", symbol="btc", name="Bitcoin", current_price=67000.0)
    jobs = make_jobs(store, channel, no_sleep, sources, FakeCoinGecko(coins=[coin]))

    await jobs.push_crypto_prices()

    assert [text.splitlines()[0] for _, text, _ in channel.sent] == ["🪙 <b>Bitcoin (BTC)</b>"]


@pytest.mark.asyncio
async def test_check_price_alerts_uses_evaluator(store, channel, no_sleep, sources):
    store.create_user(1, 10)
    store.create_alert(1, "BTCUSDT", 50.0, "above")
    coingecko = FakeCoinGecko()
    coingecko.prices["BTCUSDT"] = 60.0
    jobs = make_jobs(store, channel, no_sleep, sources, coingecko)

    await jobs.check_price_alerts()

    assert len(channel.sent) == 1
    assert store.get_active_alerts() == []


@pytest.mark.asyncio
async def test_cleanup_uses_retention(store, engine, channel, no_sleep, sources):
    with get_session(engine) as session:
        session.add(PushRecord(
            user_id=1, chat_id=1, category=Category.PRICES, content="old", success=True,
            sent_at=utcnow() - timedelta(days=8),
        ))
        session.add(PushRecord(
            user_id=1, chat_id=1, category=Category.PRICES, content="new", success=True,
        ))
    jobs = make_jobs(store, channel, no_sleep, sources, history_retention_days=7)

    await jobs.cleanup_old_records()

    assert [r.content for r in store.get_history_by_category("prices")] == ["new"]


def test_default_job_table(store, channel, no_sleep, sources):
    jobs = make_jobs(store, channel, no_sleep, sources).default_jobs()

    table = {job.id: (job.cron, job.max_retries) for job in jobs}
    assert table == {
        "trending_coins_hourly": ("0 * * * *", 3),
        "price_comparison_hourly": ("0 * * * *", 3),
        "funding_rates_every_4h": ("0 */4 * * *", 3),
        "crypto_prices_hourly": ("0 * * * *", 3),
        "check_price_alerts": ("*/5 * * * *", 3),
        "cleanup_old_records": ("0 0 * * *", 1),
    }
    for job in jobs:
        CronSchedule.parse(job.cron)
        assert job.enabled
