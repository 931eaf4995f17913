"""Shared utilities for market data push."""
import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now; the store keeps naive UTC timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(ts: float | None) -> datetime:
    """Convert optional Unix timestamp (seconds) to naive UTC datetime; fallback to now."""
    if ts is None:
        return utcnow()
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def parse_timestamp_ms(ts_ms: int | str | None) -> datetime | None:
    """Convert optional Unix timestamp in milliseconds (exchanges send strings) to datetime."""
    if ts_ms in (None, ""):
        return None
    return parse_timestamp(int(ts_ms) / 1000)


def new_id() -> str:
    """Random hex id for alerts and push records."""
    return uuid.uuid4().hex


def unique_ordered(items: list[str] | tuple[str, ...]) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(items))
