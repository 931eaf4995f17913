import asyncio

import pytest
from conftest import FakeSource

from market_data_push.services import PriceAggregator


def aggregator_for(*sources, sleep=None):
    kwargs = {"sleep": sleep} if sleep is not None else {}
    return PriceAggregator({s.name: s for s in sources}, **kwargs)


@pytest.mark.asyncio
async def test_compare_tolerates_one_failing_source():
    aggregator = aggregator_for(
        FakeSource("binance", error=RuntimeError("boom")),
        FakeSource("okx", prices={"BTCUSDT": 100.0}),
        FakeSource("bybit", prices={"BTCUSDT": 105.0}),
    )

    comparison = await aggregator.compare_across_sources("BTCUSDT")

    assert comparison.best.price == 100.0
    assert comparison.worst.price == 105.0
    assert comparison.price_difference == 5.0
    assert comparison.price_difference_percentage == pytest.approx(5.0)
    assert [q.source for q in comparison.quotes] == ["okx", "bybit"]
    assert comparison.funding_rates is None


@pytest.mark.asyncio
async def test_compare_returns_none_when_every_source_fails():
    aggregator = aggregator_for(
        FakeSource("binance", error=RuntimeError("down")),
        FakeSource("okx"),
        FakeSource("bybit", error=TimeoutError()),
    )
    assert await aggregator.compare_across_sources("BTCUSDT") is None


@pytest.mark.asyncio
async def test_ties_go_to_first_source_in_order():
    aggregator = aggregator_for(
        FakeSource("binance", prices={"ETHUSDT": 200.0}),
        FakeSource("okx", prices={"ETHUSDT": 100.0}),
        FakeSource("bybit", prices={"ETHUSDT": 100.0}),
        FakeSource("coingecko", prices={"ETHUSDT": 200.0}),
    )

    comparison = await aggregator.compare_across_sources("ETHUSDT")

    assert comparison.best.source == "okx"
    assert comparison.worst.source == "binance"


@pytest.mark.asyncio
async def test_compare_fetches_sources_concurrently():
    started = 0
    all_started = asyncio.Event()

    class BlockingSource(FakeSource):
        async def fetch_price(self, symbol):
            nonlocal started
            started += 1
            if started == 3:
                all_started.set()
            await all_started.wait()
            return await super().fetch_price(symbol)

    aggregator = aggregator_for(
        *(BlockingSource(name, prices={"BTCUSDT": 1.0}) for name in ("a", "b", "c"))
    )

    comparison = await asyncio.wait_for(
        aggregator.compare_across_sources("BTCUSDT"), timeout=1.0
    )
    assert len(comparison.quotes) == 3


@pytest.mark.asyncio
async def test_compare_with_selected_sources_and_unknown_name():
    binance = FakeSource("binance", prices={"BTCUSDT": 100.0})
    okx = FakeSource("okx", prices={"BTCUSDT": 101.0})
    aggregator = aggregator_for(binance, okx)

    comparison = await aggregator.compare_across_sources("btcusdt", ["OKX", "kraken"])

    assert [q.source for q in comparison.quotes] == ["okx"]
    assert binance.price_calls == []
    assert okx.price_calls == ["BTCUSDT"]


@pytest.mark.asyncio
async def test_compare_attaches_funding_rates():
    aggregator = aggregator_for(
        FakeSource("binance", prices={"BTCUSDT": 100.0}, funding={"BTCUSDT": 0.0001}),
        FakeSource("okx", prices={"BTCUSDT": 100.5}, funding={"BTCUSDT": -0.0002}),
        FakeSource("coingecko", prices={"BTCUSDT": 100.2}, supports_funding=False),
    )

    comparison = await aggregator.compare_across_sources(
        "BTCUSDT", include_funding_rates=True
    )

    assert [r.source for r in comparison.funding_rates] == ["binance", "okx"]
    assert len(comparison.quotes) == 3


@pytest.mark.asyncio
async def test_aggregate_funding_rates_partial_and_empty():
    aggregator = aggregator_for(
        FakeSource("binance", funding={"BTCUSDT": 0.0001}),
        FakeSource("okx", error=RuntimeError("boom")),
        FakeSource("bybit"),
    )

    rates = await aggregator.aggregate_funding_rates("BTCUSDT")
    assert [(r.source, r.funding_rate) for r in rates] == [("binance", 0.0001)]
    assert await aggregator.aggregate_funding_rates("ETHUSDT") == []


@pytest.mark.asyncio
async def test_batch_compare_skips_symbols_without_quotes(no_sleep):
    aggregator = aggregator_for(
        FakeSource("binance", prices={"BTCUSDT": 100.0, "SUIUSDT": 1.5}),
        sleep=no_sleep,
    )

    comparisons = await aggregator.batch_compare(["BTCUSDT", "NOPEUSDT", "SUIUSDT"])

    assert [c.symbol for c in comparisons] == ["BTCUSDT", "SUIUSDT"]
    assert no_sleep.calls == [0.1, 0.1]


def test_rate_limit_stats_per_source():
    aggregator = aggregator_for(FakeSource("binance"), FakeSource("okx"))
    assert [s["source"] for s in aggregator.get_rate_limit_stats()] == ["binance", "okx"]
