"""CRUD store for users, subscriptions, alerts and push history."""
import logging
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from market_data_push.db.models import (DEFAULT_SCHEDULE, AlertCondition,
                                        Category, PriceAlert, PushRecord,
                                        Subscription, User)
from market_data_push.db.sessions import get_session
from market_data_push.scheduler.cron import CronSchedule
from market_data_push.utils import unique_ordered, utcnow

logger = logging.getLogger(__name__)

_USER_FIELDS = frozenset({
    "chat_id", "username", "first_name", "last_name",
    "language_code", "timezone", "is_premium", "max_subscriptions",
})
_SUBSCRIPTION_FIELDS = frozenset({
    "is_active", "schedule", "symbols", "sources", "price_threshold",
})


class StoreError(Exception):
    """A store operation failed; nothing was written."""


class RecordNotFound(StoreError, LookupError):
    """The user, subscription or alert does not exist."""


class SubscriptionLimitError(StoreError):
    """A new subscription would exceed the user's max_subscriptions."""

    def __init__(self, user_id: int, limit: int) -> None:
        super().__init__(f"User {user_id} reached the limit of {limit} subscriptions")
        self.user_id = user_id
        self.limit = limit


def _clean_symbols(symbols: Iterable[str] | None) -> list[str]:
    return unique_ordered([s.strip().upper() for s in symbols or () if s.strip()])


def _clean_sources(sources: Iterable[str] | None) -> list[str]:
    return unique_ordered([s.strip().lower() for s in sources or () if s.strip()])


class SubscriptionStore:
    """Synchronous SQLModel store.

    Every public method runs in its own transaction. SQLAlchemy failures are
    raised as StoreError; missing rows as RecordNotFound.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        try:
            with get_session(self._engine) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Store operation failed: %s", exc)
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _require_user(session: Session, user_id: int) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise RecordNotFound(f"User {user_id} not found")
        return user

    # Users

    def create_user(
        self,
        user_id: int,
        chat_id: int,
        *,
        username: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        language_code: str | None = None,
    ) -> User:
        """Insert a user, or refresh the profile fields of an existing one."""
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                user = User(
                    user_id=user_id,
                    chat_id=chat_id,
                    username=username,
                    first_name=first_name,
                    last_name=last_name,
                    language_code=language_code or "en",
                )
                logger.info("User created: %s", user_id)
            else:
                user.chat_id = chat_id
                for name, value in (
                    ("username", username),
                    ("first_name", first_name),
                    ("last_name", last_name),
                    ("language_code", language_code),
                ):
                    if value is not None:
                        setattr(user, name, value)
                user.updated_at = utcnow()
            session.add(user)
            session.flush()
            return user

    def get_user(self, user_id: int) -> User | None:
        with self._session() as session:
            return session.get(User, user_id)

    def update_user(self, user_id: int, **changes: Any) -> User:
        unknown = set(changes) - _USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {', '.join(sorted(unknown))}")
        with self._session() as session:
            user = self._require_user(session, user_id)
            for name, value in changes.items():
                setattr(user, name, value)
            user.updated_at = utcnow()
            session.add(user)
            return user

    def delete_user(self, user_id: int) -> bool:
        """Delete a user with all their subscriptions, alerts and history in one transaction."""
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                return False
            for model in (Subscription, PriceAlert, PushRecord):
                session.execute(delete(model).where(col(model.user_id) == user_id))
            session.delete(user)
        logger.info("User deleted with related records: %s", user_id)
        return True

    # Subscriptions

    def add_subscription(
        self,
        user_id: int,
        category: Category | str,
        *,
        symbols: Iterable[str] | None = None,
        sources: Iterable[str] | None = None,
        schedule: str = DEFAULT_SCHEDULE,
        price_threshold: float | None = None,
    ) -> Subscription:
        """Create or replace the user's subscription to ``category``.

        Replacing an existing (user, category) subscription reactivates it and
        does not count against the cap.

        Raises:
            RecordNotFound: unknown user.
            SubscriptionLimitError: the user is at max_subscriptions.
            CronSyntaxError: invalid schedule.
        """
        category = Category(category)
        CronSchedule.parse(schedule)
        with self._session() as session:
            user = self._require_user(session, user_id)
            subscription = session.exec(
                select(Subscription).where(
                    Subscription.user_id == user_id, Subscription.category == category
                )
            ).first()
            if subscription is None:
                count = session.exec(
                    select(func.count()).select_from(Subscription).where(
                        Subscription.user_id == user_id
                    )
                ).one()
                if count >= user.max_subscriptions:
                    raise SubscriptionLimitError(user_id, user.max_subscriptions)
                subscription = Subscription(
                    user_id=user_id, chat_id=user.chat_id, category=category
                )
            subscription.chat_id = user.chat_id
            subscription.is_active = True
            subscription.schedule = schedule
            subscription.symbols = _clean_symbols(symbols)
            subscription.sources = _clean_sources(sources)
            subscription.price_threshold = price_threshold
            subscription.updated_at = utcnow()
            session.add(subscription)
            session.flush()
            logger.info("Subscription saved: user=%s category=%s", user_id, category.value)
            return subscription

    def remove_subscription(self, user_id: int, category: Category | str) -> bool:
        category = Category(category)
        with self._session() as session:
            result = session.execute(
                delete(Subscription).where(
                    col(Subscription.user_id) == user_id,
                    col(Subscription.category) == category,
                )
            )
            removed = result.rowcount > 0
        if removed:
            logger.info("Subscription removed: user=%s category=%s", user_id, category.value)
        return removed

    def update_subscription(
        self, user_id: int, category: Category | str, **changes: Any
    ) -> Subscription:
        """Change schedule, symbols, sources, threshold or pause/resume (is_active)."""
        unknown = set(changes) - _SUBSCRIPTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown subscription fields: {', '.join(sorted(unknown))}")
        if "schedule" in changes:
            CronSchedule.parse(changes["schedule"])
        if "symbols" in changes:
            changes["symbols"] = _clean_symbols(changes["symbols"])
        if "sources" in changes:
            changes["sources"] = _clean_sources(changes["sources"])
        category = Category(category)
        with self._session() as session:
            subscription = session.exec(
                select(Subscription).where(
                    Subscription.user_id == user_id, Subscription.category == category
                )
            ).first()
            if subscription is None:
                raise RecordNotFound(
                    f"Subscription {category.value} for user {user_id} not found"
                )
            for name, value in changes.items():
                setattr(subscription, name, value)
            subscription.updated_at = utcnow()
            session.add(subscription)
            return subscription

    def get_user_subscriptions(self, user_id: int) -> list[Subscription]:
        with self._session() as session:
            return list(session.exec(
                select(Subscription)
                .where(Subscription.user_id == user_id)
                .order_by(col(Subscription.id))
            ).all())

    def get_active_subscriptions(
        self, category: Category | str | None = None
    ) -> list[Subscription]:
        """Active subscriptions, optionally for one category, in insertion order."""
        statement = select(Subscription).where(col(Subscription.is_active).is_(True))
        if category is not None:
            statement = statement.where(Subscription.category == Category(category))
        with self._session() as session:
            return list(session.exec(statement.order_by(col(Subscription.id))).all())

    # Alerts

    def create_alert(
        self,
        user_id: int,
        symbol: str,
        target_price: float,
        condition: AlertCondition | str,
    ) -> PriceAlert:
        if target_price <= 0:
            raise ValueError("target_price must be > 0")
        condition = AlertCondition(condition)
        with self._session() as session:
            user = self._require_user(session, user_id)
            alert = PriceAlert(
                user_id=user_id,
                chat_id=user.chat_id,
                symbol=symbol.strip().upper(),
                target_price=target_price,
                condition=condition,
            )
            session.add(alert)
            session.flush()
            logger.info(
                "Alert created: %s %s %s %s", alert.id, alert.symbol,
                condition.value, target_price,
            )
            return alert

    def get_user_alerts(
        self, user_id: int, *, include_triggered: bool = True
    ) -> list[PriceAlert]:
        statement = select(PriceAlert).where(PriceAlert.user_id == user_id)
        if not include_triggered:
            statement = statement.where(col(PriceAlert.triggered).is_(False))
        with self._session() as session:
            return list(session.exec(
                statement.order_by(col(PriceAlert.created_at), col(PriceAlert.id))
            ).all())

    def get_alert(self, alert_id: str) -> PriceAlert | None:
        with self._session() as session:
            return session.get(PriceAlert, alert_id)

    def delete_alert(self, alert_id: str, user_id: int | None = None) -> bool:
        """Delete an alert; with user_id, only if that user owns it."""
        statement = delete(PriceAlert).where(col(PriceAlert.id) == alert_id)
        if user_id is not None:
            statement = statement.where(col(PriceAlert.user_id) == user_id)
        with self._session() as session:
            return session.execute(statement).rowcount > 0

    def get_active_alerts(self) -> list[PriceAlert]:
        """Alerts that are active and not yet triggered."""
        with self._session() as session:
            return list(session.exec(
                select(PriceAlert)
                .where(
                    col(PriceAlert.is_active).is_(True),
                    col(PriceAlert.triggered).is_(False),
                )
                .order_by(col(PriceAlert.created_at), col(PriceAlert.id))
            ).all())

    def trigger_alert(self, alert_id: str) -> bool:
        """Mark an alert triggered. True only for the call that made the transition."""
        with self._session() as session:
            result = session.execute(
                update(PriceAlert)
                .where(
                    col(PriceAlert.id) == alert_id,
                    col(PriceAlert.triggered).is_(False),
                )
                .values(triggered=True, triggered_at=utcnow())
            )
            return result.rowcount == 1

    # History

    def add_push_record(
        self,
        user_id: int,
        chat_id: int,
        category: Category | str,
        content: str,
        success: bool,
        error_message: str | None = None,
    ) -> str:
        """Append a delivery outcome; returns the record id."""
        record = PushRecord(
            user_id=user_id,
            chat_id=chat_id,
            category=Category(category),
            content=content,
            success=success,
            error_message=error_message,
        )
        with self._session() as session:
            session.add(record)
        return record.id

    def get_user_history(self, user_id: int, limit: int = 50) -> list[PushRecord]:
        """Most recent push records for a user, newest first."""
        with self._session() as session:
            return list(session.exec(
                select(PushRecord)
                .where(PushRecord.user_id == user_id)
                .order_by(col(PushRecord.sent_at).desc())
                .limit(limit)
            ).all())

    def get_history_by_category(
        self, category: Category | str, limit: int = 100
    ) -> list[PushRecord]:
        with self._session() as session:
            return list(session.exec(
                select(PushRecord)
                .where(PushRecord.category == Category(category))
                .order_by(col(PushRecord.sent_at).desc())
                .limit(limit)
            ).all())

    def clean_old_records(self, days: int = 30) -> int:
        """Delete push records sent before now - days; returns how many were removed."""
        cutoff = utcnow() - timedelta(days=days)
        with self._session() as session:
            deleted = session.execute(
                delete(PushRecord).where(col(PushRecord.sent_at) < cutoff)
            ).rowcount
        logger.info("Deleted %d push records older than %d days", deleted, days)
        return deleted

    def get_stats(self) -> dict[str, int]:
        """Row counts for the ops API."""
        with self._session() as session:
            def count(model, *where) -> int:
                statement = select(func.count()).select_from(model)
                if where:
                    statement = statement.where(*where)
                return session.exec(statement).one()

            return {
                "users": count(User),
                "subscriptions": count(Subscription),
                "active_subscriptions": count(
                    Subscription, col(Subscription.is_active).is_(True)
                ),
                "alerts": count(PriceAlert),
                "active_alerts": count(
                    PriceAlert,
                    col(PriceAlert.is_active).is_(True),
                    col(PriceAlert.triggered).is_(False),
                ),
                "push_records": count(PushRecord),
            }
