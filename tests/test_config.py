import pytest
from pydantic import ValidationError

from market_data_push.config import DEFAULT_RATE_LIMITS, Settings, SourceSettings
from market_data_push.providers import (CoinGeckoProvider, OKXClient,
                                        build_source_clients,
                                        create_source_client)

ENV_VARS = [
    "TG_BOT_TOKEN", "DATABASE_URL", "LOG_LEVEL", "TRACKED_SYMBOLS",
    "SCHEDULER_MAX_JOBS", "HISTORY_RETENTION_DAYS", "OKX_RATE_LIMIT",
    "OKX_BASE_URL", "COINGECKO_API_KEY", "COMPARISON_SOURCES",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.bot_token is None
    assert settings.database_url == "sqlite:///./data/bot.db"
    assert settings.comparison_sources == ["binance", "okx", "bybit"]
    assert settings.alert_source == "coingecko"
    assert settings.scheduler_max_jobs == 5
    assert settings.history_retention_days == 30
    assert {name: s.rate_limit for name, s in settings.sources.items()} == DEFAULT_RATE_LIMITS


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("TRACKED_SYMBOLS", "btcusdt, solusdt,")
    monkeypatch.setenv("OKX_RATE_LIMIT", "20")
    monkeypatch.setenv("OKX_BASE_URL", "https://okx.test")
    monkeypatch.setenv("COMPARISON_SOURCES", "okx,bybit")

    settings = Settings.from_env()

    assert settings.bot_token == "123:abc"
    assert settings.log_level == "DEBUG"
    assert settings.tracked_symbols == ["BTCUSDT", "SOLUSDT"]
    assert settings.sources["okx"].rate_limit == 20
    assert settings.sources["okx"].base_url == "https://okx.test"
    assert settings.comparison_sources == ["okx", "bybit"]


@pytest.mark.parametrize(
    "name, value",
    [
        ("SCHEDULER_MAX_JOBS", "0"),
        ("HISTORY_RETENTION_DAYS", "soon"),
        ("OKX_RATE_LIMIT", "-1"),
    ],
)
def test_invalid_values_fail_fast(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings.from_env()


@pytest.mark.asyncio
async def test_build_source_clients_from_settings(monkeypatch):
    monkeypatch.setenv("COINGECKO_API_KEY", "secret")
    monkeypatch.setenv("OKX_RATE_LIMIT", "20")

    clients = build_source_clients(Settings.from_env().sources.values())
    try:
        assert list(clients) == ["binance", "okx", "bybit", "coingecko"]
        assert isinstance(clients["okx"], OKXClient)
        assert clients["okx"].rate_limiter.stats()["limit"] == 20
        coingecko = clients["coingecko"]
        assert isinstance(coingecko, CoinGeckoProvider)
        assert str(coingecko._client.base_url).startswith(CoinGeckoProvider.PRO_BASE_URL)
    finally:
        for client in clients.values():
            await client.close()


def test_unknown_source_rejected():
    with pytest.raises(ValueError, match="Unknown source: kraken"):
        create_source_client(SourceSettings(name="kraken", rate_limit=10))
