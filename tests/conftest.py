import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from market_data_push.db import SubscriptionStore, init_db
from market_data_push.notifications import DeliveryError, RenderMode
from market_data_push.providers.core import RateLimiter
from market_data_push.schemas import ExchangeQuote, FundingRate


class FakeClock:
    """Monotonic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeChannel:
    """Records sends; chats in fail_for raise DeliveryError."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent: list[tuple[int, str, RenderMode]] = []

    async def send(self, chat_id, text, render_mode=RenderMode.HTML):
        if chat_id in self.fail_for:
            raise DeliveryError(chat_id, f"chat {chat_id} blocked the bot")
        self.sent.append((chat_id, text, render_mode))

    async def answer_interaction(self, interaction_id, text=None):
        return None


class FakeSource:
    """Duck-typed source client returning canned prices and funding rates."""

    def __init__(self, name, prices=None, funding=None, error=None, supports_funding=True):
        self.name = name
        self.prices = prices or {}
        self.funding = funding or {}
        self.error = error
        self.supports_funding_rates = supports_funding
        self.rate_limiter = RateLimiter(name, max_requests=100)
        self.price_calls: list[str] = []

    async def fetch_price(self, symbol):
        self.price_calls.append(symbol)
        if self.error is not None:
            raise self.error
        price = self.prices.get(symbol)
        if price is None:
            return None
        return ExchangeQuote(source=self.name, symbol=symbol, price=price)

    async def fetch_funding_rate(self, symbol):
        if self.error is not None:
            raise self.error
        rate = self.funding.get(symbol)
        if rate is None:
            return None
        return FundingRate(source=self.name, symbol=symbol, funding_rate=rate)

    async def close(self):
        return None


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    return SleepRecorder()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SubscriptionStore(engine)


@pytest.fixture
def channel():
    return FakeChannel()
