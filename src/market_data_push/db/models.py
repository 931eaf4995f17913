"""Database models for the market data push service.

Only users, their subscriptions and alerts, and the bounded push history are
persisted. Quotes and comparisons are fetched per job run and never stored.
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from market_data_push.utils import new_id, utcnow

DEFAULT_SCHEDULE = "0 * * * *"
DEFAULT_MAX_SUBSCRIPTIONS = 5


class Category(str, Enum):
    """Subscription topic."""

    PRICES = "prices"
    TRENDING = "trending"
    COMPARISON = "comparison"
    FUNDING_RATES = "funding_rates"
    ALERTS = "alerts"


class AlertCondition(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class User(SQLModel, table=True):
    """A messaging-channel user (Telegram user id is the primary key)."""

    user_id: int = Field(primary_key=True, sa_type=BigInteger)
    chat_id: int = Field(sa_type=BigInteger)
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    language_code: str = Field(default="en")
    timezone: str = Field(default="UTC")
    is_premium: bool = Field(default=False)
    max_subscriptions: int = Field(default=DEFAULT_MAX_SUBSCRIPTIONS)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Subscription(SQLModel, table=True):
    """One category a user receives pushes for. Unique per (user_id, category)."""

    __table_args__ = (UniqueConstraint("user_id", "category"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.user_id", index=True, sa_type=BigInteger)
    chat_id: int = Field(sa_type=BigInteger)
    category: Category = Field(index=True)
    is_active: bool = Field(default=True)
    schedule: str = Field(default=DEFAULT_SCHEDULE)  # cron expression
    symbols: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    sources: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    price_threshold: float | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PriceAlert(SQLModel, table=True):
    """One-shot price alert. Once triggered it is never evaluated again."""

    __tablename__ = "price_alert"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: int = Field(foreign_key="user.user_id", index=True, sa_type=BigInteger)
    chat_id: int = Field(sa_type=BigInteger)
    symbol: str = Field(index=True)
    target_price: float
    condition: AlertCondition
    is_active: bool = Field(default=True)
    triggered: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    triggered_at: datetime | None = None


class PushRecord(SQLModel, table=True):
    """Append-only delivery log entry, pruned by the retention job."""

    __tablename__ = "push_record"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: int = Field(index=True, sa_type=BigInteger)
    chat_id: int = Field(sa_type=BigInteger)
    category: Category
    content: str
    success: bool
    error_message: str | None = None
    sent_at: datetime = Field(default_factory=utcnow, index=True)
