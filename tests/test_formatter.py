from datetime import datetime

import pytest

from market_data_push.db import PriceAlert
from market_data_push.schemas import (CoinInfo, ExchangeQuote, FundingRate,
                                      TrendingCoin)
from market_data_push.services import build_comparison
from market_data_push.services.formatter import (format_alert_triggered,
                                                 format_coin_info,
                                                 format_funding_rates,
                                                 format_market_cap,
                                                 format_percentage,
                                                 format_price,
                                                 format_price_comparison,
                                                 format_rate,
                                                 format_timestamp,
                                                 format_trending_coins,
                                                 format_volume)


@pytest.mark.parametrize(
    "price, expected",
    [
        (67000.5, "$67,000.50"),
        (100, "$100.00"),
        (1.23456, "$1.23456"),
        (0.00001234, "$0.00001234"),
    ],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


def test_percentages_volumes_and_rates():
    assert format_percentage(2.5) == "🟢 +2.50%"
    assert format_percentage(-1.234) == "🔴 -1.23%"
    assert format_volume(1.5e9) == "$1.50B"
    assert format_volume(2500) == "$2.50K"
    assert format_volume(12) == "$12.00"
    assert format_market_cap(1.3e12) == "$1.30T"
    assert format_market_cap(5e5) == "$500000.00"
    assert format_rate(0.0001) == "0.0100%"
    assert format_rate(-0.00025) == "-0.0250%"


def test_format_timestamp_is_utc():
    assert format_timestamp(datetime(2024, 5, 1, 8, 30, 59)) == "2024-05-01 08:30 UTC"


def test_comparison_message():
    quotes = [
        ExchangeQuote(source="binance", symbol="BTCUSDT", price=100.0),
        ExchangeQuote(source="okx", symbol="BTCUSDT", price=105.0),
    ]
    funding = [FundingRate(source="binance", symbol="BTCUSDT", funding_rate=0.0001)]

    text = format_price_comparison(build_comparison("BTCUSDT", quotes, funding))

    assert "<b>BTCUSDT price comparison</b>" in text
    assert "binance: <code>$100.00</code>" in text
    assert "Max difference: <code>$5.00</code>" in text
    assert "🟢 +5.00%" in text
    assert "binance: <code>0.0100%</code>" in text


def test_trending_message_ranks_and_escapes():
    coins = [
        TrendingCoin(id="pepe", name="Pepe <3", symbol="pepe", market_cap_rank=30, score=0),
        TrendingCoin(id="sui", name="Sui", symbol="sui"),
    ]
    text = format_trending_coins(coins)
    assert "🥇 <b>Pepe &lt;3 (PEPE)</b>" in text
    assert "🥈 <b>Sui (SUI)</b>" in text
    assert "Market cap rank: N/A" in text


def test_coin_info_message():
    coin = CoinInfo(
        id="bitcoin", symbol="btc", name="Bitcoin", current_price=67000.0,
        price_change_percentage_24h=-3.1, market_cap=1.3e12, market_cap_rank=1,
        volume_24h=2.5e10, high_24h=68000.0, low_24h=66000.0,
        last_updated=datetime(2024, 5, 1, 12, 0),
    )
    text = format_coin_info(coin)
    assert "<b>Bitcoin (BTC)</b>" in text
    assert "🔴 -3.10%" in text
    assert "(rank: #1)" in text
    assert "Updated: 2024-05-01 12:00 UTC" in text


def test_funding_rates_message():
    rates = [
        FundingRate(source="okx", symbol="ETHUSDT", funding_rate=-0.0002,
                    next_funding_time=datetime(2024, 5, 1, 16, 0)),
    ]
    text = format_funding_rates(rates)
    assert "🔴 <b>okx</b>" in text
    assert "ETHUSDT: <code>-0.0200%</code>" in text
    assert "Next funding: 2024-05-01 16:00 UTC" in text


def test_alert_message():
    alert = PriceAlert(user_id=1, chat_id=1, symbol="btcusdt", target_price=100.0,
                       condition="below")
    text = format_alert_triggered(alert, 99.0)
    assert "<b>BTCUSDT</b>" in text
    assert "Target price: <code>$100.00</code>" in text
    assert "Current price: <code>$99.00</code>" in text
    assert "Condition: below target" in text

