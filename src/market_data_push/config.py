"""Process configuration, read from environment variables at startup."""
import os

from pydantic import BaseModel, Field, field_validator

DEFAULT_DATABASE_URL = "sqlite:///./data/bot.db"

# Requests per minute allowed by each provider's public tier.
DEFAULT_RATE_LIMITS: dict[str, int] = {
    "binance": 1200,
    "okx": 600,
    "bybit": 600,
    "coingecko": 50,
}


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class SourceSettings(BaseModel):
    """Connection settings for one market-data source."""

    name: str
    base_url: str | None = None
    rate_limit: int = Field(gt=0)
    api_key: str | None = None


class Settings(BaseModel):
    """Everything the service reads from the environment.

    Built once by ``Settings.from_env()``; invalid values raise
    ``pydantic.ValidationError`` before anything starts.
    """

    bot_token: str | None = None
    database_url: str = DEFAULT_DATABASE_URL
    sql_echo: bool = False
    log_level: str = "INFO"
    log_file: str | None = None

    sources: dict[str, SourceSettings] = Field(default_factory=dict)
    comparison_sources: list[str] = Field(
        default_factory=lambda: ["binance", "okx", "bybit"]
    )
    alert_source: str = "coingecko"
    tracked_symbols: list[str] = Field(
        default_factory=lambda: ["BTCUSDT", "ETHUSDT", "SUIUSDT"]
    )
    tracked_coin_ids: list[str] = Field(
        default_factory=lambda: ["bitcoin", "ethereum", "sui"]
    )

    scheduler_timezone: str = "UTC"
    scheduler_max_jobs: int = Field(default=5, ge=1)
    history_retention_days: int = Field(default=30, ge=1)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("tracked_symbols")
    @classmethod
    def _upper_symbols(cls, value: list[str]) -> list[str]:
        return [symbol.upper() for symbol in value]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from os.environ."""
        sources = {
            name: SourceSettings(
                name=name,
                base_url=os.getenv(f"{name.upper()}_BASE_URL") or None,
                rate_limit=os.getenv(f"{name.upper()}_RATE_LIMIT", str(limit)),
                api_key=os.getenv(f"{name.upper()}_API_KEY") or None,
            )
            for name, limit in DEFAULT_RATE_LIMITS.items()
        }
        return cls(
            bot_token=os.getenv("TG_BOT_TOKEN") or None,
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            sql_echo=os.getenv("SQL_ECHO", "0") == "1",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            sources=sources,
            comparison_sources=_csv(os.getenv("COMPARISON_SOURCES", "binance,okx,bybit")),
            alert_source=os.getenv("ALERT_SOURCE", "coingecko"),
            tracked_symbols=_csv(os.getenv("TRACKED_SYMBOLS", "BTCUSDT,ETHUSDT,SUIUSDT")),
            tracked_coin_ids=_csv(os.getenv("TRACKED_COIN_IDS", "bitcoin,ethereum,sui")),
            scheduler_timezone=os.getenv("SCHEDULER_TIMEZONE", "UTC"),
            scheduler_max_jobs=os.getenv("SCHEDULER_MAX_JOBS", "5"),
            history_retention_days=os.getenv("HISTORY_RETENTION_DAYS", "30"),
        )
