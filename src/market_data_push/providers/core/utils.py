"""Shared utilities for market data sources."""

QUOTE_ASSETS = ("USDT", "USDC", "USD")


def normalize_symbol(symbol: str) -> str:
    """Canonical pair notation: uppercase, no separators (btc-usdt -> BTCUSDT)."""
    return symbol.upper().replace("-", "").replace("/", "").replace("_", "")


def split_symbol(symbol: str) -> tuple[str, str]:
    """Split a canonical pair into (base, quote).

    Raises:
        ValueError: the symbol does not end in a known quote asset.
    """
    canonical = normalize_symbol(symbol)
    for quote in QUOTE_ASSETS:
        if canonical.endswith(quote) and len(canonical) > len(quote):
            return canonical[: -len(quote)], quote
    raise ValueError(f"Unsupported symbol '{symbol}'")


def to_float(value: object) -> float | None:
    """Parse a numeric field that exchanges send as strings; '' and None give None."""
    if value in (None, ""):
        return None
    return float(value)
