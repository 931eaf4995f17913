"""Delivery of one message to every active subscriber of a category."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from market_data_push.db.models import Category
from market_data_push.db.store import SubscriptionStore
from market_data_push.notifications.channel import (NotificationChannel,
                                                    RenderMode)

logger = logging.getLogger(__name__)

SEND_DELAY = 0.1


@dataclass(frozen=True)
class BroadcastReport:
    category: Category
    total: int
    delivered: int
    failed: int


class BroadcastDispatcher:
    """Sends to subscribers one at a time, in store order, and records each outcome.

    A failed send is recorded as a PushRecord with the error text and the loop
    moves on to the next subscriber. Store errors are not caught: they fail
    the job that called broadcast().
    """

    def __init__(
        self,
        store: SubscriptionStore,
        channel: NotificationChannel,
        *,
        send_delay: float = SEND_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._channel = channel
        self._send_delay = send_delay
        self._sleep = sleep

    async def broadcast(
        self,
        category: Category | str,
        message: str,
        render_mode: RenderMode = RenderMode.HTML,
    ) -> BroadcastReport:
        category = Category(category)
        subscriptions = await asyncio.to_thread(
            self._store.get_active_subscriptions, category
        )
        delivered = failed = 0
        for index, subscription in enumerate(subscriptions):
            if index:
                await self._sleep(self._send_delay)
            error: str | None = None
            try:
                await self._channel.send(subscription.chat_id, message, render_mode)
            except Exception as exc:  # pylint: disable=broad-except
                error = str(exc) or type(exc).__name__
                logger.warning(
                    "Failed to deliver %s to chat %s: %s",
                    category.value, subscription.chat_id, error,
                )
            await asyncio.to_thread(
                self._store.add_push_record,
                user_id=subscription.user_id,
                chat_id=subscription.chat_id,
                category=category,
                content=message,
                success=error is None,
                error_message=error,
            )
            if error is None:
                delivered += 1
            else:
                failed += 1

        report = BroadcastReport(
            category=category,
            total=len(subscriptions),
            delivered=delivered,
            failed=failed,
        )
        logger.info(
            "Broadcast %s: %d/%d delivered", category.value, delivered, report.total
        )
        return report
