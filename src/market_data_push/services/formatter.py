"""Telegram HTML rendering of push messages."""
from collections.abc import Sequence
from datetime import datetime, timezone
from html import escape

from market_data_push.db.models import AlertCondition, PriceAlert
from market_data_push.schemas import (CoinInfo, FundingRate, PriceComparison,
                                      TrendingCoin)
from market_data_push.utils import utcnow

RANK_EMOJIS = ["🥇", "🥈", "🥉", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟"]


def format_price(price: float) -> str:
    if price >= 1:
        text = f"{price:,.6f}".rstrip("0")
        whole, _, frac = text.partition(".")
        return f"${whole}.{frac.ljust(2, '0')}"
    return f"${price:.8f}"


def format_percentage(percentage: float) -> str:
    sign = "+" if percentage >= 0 else ""
    emoji = "🟢" if percentage >= 0 else "🔴"
    return f"{emoji} {sign}{percentage:.2f}%"


def _compact(value: float, units: Sequence[tuple[float, str]]) -> str:
    for size, suffix in units:
        if value >= size:
            return f"${value / size:.2f}{suffix}"
    return f"${value:.2f}"


def format_volume(volume: float) -> str:
    return _compact(volume, [(1e9, "B"), (1e6, "M"), (1e3, "K")])


def format_market_cap(market_cap: float) -> str:
    return _compact(market_cap, [(1e12, "T"), (1e9, "B"), (1e6, "M")])


def format_timestamp(dt: datetime | None = None) -> str:
    """UTC wall-clock time; naive datetimes are taken as UTC."""
    dt = dt or utcnow()
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M UTC")


def format_rate(rate: float) -> str:
    """Funding rate fraction as a percentage with 4 decimals (0.0001 -> 0.0100%)."""
    return f"{rate * 100:.4f}%"


def format_coin_info(coin: CoinInfo) -> str:
    rank = f"#{coin.market_cap_rank}" if coin.market_cap_rank else "N/A"
    lines = [
        f"🪙 <b>{escape(coin.name)} ({escape(coin.symbol.upper())})</b>",
        f"💰 Price: <code>{format_price(coin.current_price)}</code>",
        f"📊 24h change: {format_percentage(coin.price_change_percentage_24h)}",
        f"📈 Market cap: <code>{format_market_cap(coin.market_cap)}</code> (rank: {rank})",
        f"💹 24h volume: <code>{format_volume(coin.volume_24h)}</code>",
        f"🔺 24h high: <code>{format_price(coin.high_24h)}</code>",
        f"🔻 24h low: <code>{format_price(coin.low_24h)}</code>",
        f"⏰ Updated: {format_timestamp(coin.last_updated)}",
    ]
    return "\n".join(lines)


def format_trending_coins(coins: Sequence[TrendingCoin]) -> str:
    parts = ["🔥 <b>Trending coins</b>", ""]
    for index, coin in enumerate(coins):
        emoji = RANK_EMOJIS[index] if index < len(RANK_EMOJIS) else f"{index + 1}."
        rank = f"#{coin.market_cap_rank}" if coin.market_cap_rank else "N/A"
        parts.append(f"{emoji} <b>{escape(coin.name)} ({escape(coin.symbol.upper())})</b>")
        parts.append(f"   Market cap rank: {rank}")
        parts.append(f"   Trend score: {coin.score:.1f}")
        parts.append("")
    parts.append(f"⏰ Updated: {format_timestamp()}")
    return "\n".join(parts)


def format_price_comparison(comparison: PriceComparison) -> str:
    best, worst = comparison.best, comparison.worst
    parts = [
        f"💱 <b>{escape(comparison.symbol.upper())} price comparison</b>",
        "",
        "🏆 <b>Best price</b>",
        f"{escape(best.source)}: <code>{format_price(best.price)}</code>",
        "",
        "📊 <b>Prices by source</b>",
    ]
    for quote in comparison.quotes:
        if quote is best:
            emoji = "🥇"
        elif quote is worst:
            emoji = "🥉"
        else:
            emoji = "🥈"
        parts.append(f"{emoji} {escape(quote.source)}: <code>{format_price(quote.price)}</code>")
    parts += [
        "",
        "📈 <b>Spread</b>",
        f"Max difference: <code>{format_price(comparison.price_difference)}</code>",
        f"Difference: {format_percentage(comparison.price_difference_percentage)}",
    ]
    if comparison.funding_rates:
        parts += ["", "💰 <b>Funding rates</b>"]
        for rate in comparison.funding_rates:
            parts.append(f"{escape(rate.source)}: <code>{format_rate(rate.funding_rate)}</code>")
    parts += ["", f"⏰ Updated: {format_timestamp(comparison.computed_at)}"]
    return "\n".join(parts)


def format_funding_rates(rates: Sequence[FundingRate]) -> str:
    parts = ["💰 <b>Funding rates</b>", ""]
    for rate in rates:
        emoji = "🟢" if rate.funding_rate >= 0 else "🔴"
        parts.append(f"{emoji} <b>{escape(rate.source)}</b>")
        parts.append(f"{escape(rate.symbol)}: <code>{format_rate(rate.funding_rate)}</code>")
        if rate.next_funding_time:
            parts.append(f"Next funding: {format_timestamp(rate.next_funding_time)}")
        parts.append("")
    parts.append(f"⏰ Updated: {format_timestamp()}")
    return "\n".join(parts)


def format_alert_triggered(alert: PriceAlert, current_price: float) -> str:
    direction = "above" if AlertCondition(alert.condition) is AlertCondition.ABOVE else "below"
    lines = [
        "🚨 <b>Price alert triggered!</b>",
        "",
        f"💰 Symbol: <b>{escape(alert.symbol.upper())}</b>",
        f"🎯 Target price: <code>{format_price(alert.target_price)}</code>",
        f"📊 Current price: <code>{format_price(current_price)}</code>",
        f"📈 Condition: {direction} target",
        "",
        f"⏰ Triggered: {format_timestamp()}",
    ]
    return "\n".join(lines)
