"""Database package: models, session management and the store."""
from market_data_push.db.models import (AlertCondition, Category, PriceAlert,
                                        PushRecord, Subscription, User)
from market_data_push.db.sessions import create_db_engine, get_session, init_db
from market_data_push.db.store import (RecordNotFound, StoreError,
                                       SubscriptionLimitError,
                                       SubscriptionStore)

__all__ = [
    "AlertCondition",
    "Category",
    "PriceAlert",
    "PushRecord",
    "RecordNotFound",
    "StoreError",
    "Subscription",
    "SubscriptionLimitError",
    "SubscriptionStore",
    "User",
    "create_db_engine",
    "get_session",
    "init_db",
]
