"""Price alert evaluation: check active alerts against current prices."""
import asyncio
import logging
from collections.abc import Awaitable, Callable

from market_data_push.db.models import AlertCondition, Category, PriceAlert
from market_data_push.db.store import SubscriptionStore
from market_data_push.notifications.channel import (NotificationChannel,
                                                    RenderMode)
from market_data_push.providers.core import SourceClientABC
from market_data_push.services.formatter import format_alert_triggered

logger = logging.getLogger(__name__)

GROUP_DELAY = 0.2


def alert_matches(alert: PriceAlert, price: float) -> bool:
    """above: price >= target; below: price <= target."""
    if AlertCondition(alert.condition) is AlertCondition.ABOVE:
        return price >= alert.target_price
    return price <= alert.target_price


class AlertEvaluator:
    """Triggers each matching alert exactly once.

    Alerts are grouped by symbol so each symbol's price is fetched once per
    run. A group whose price cannot be fetched is skipped. An alert is only
    marked triggered after its notification was sent; a failed send leaves
    it for the next run.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        price_source: SourceClientABC,
        channel: NotificationChannel,
        *,
        group_delay: float = GROUP_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._price_source = price_source
        self._channel = channel
        self._group_delay = group_delay
        self._sleep = sleep

    async def evaluate(self) -> list[str]:
        """Run one evaluation cycle; returns the ids of alerts triggered in it."""
        alerts = await asyncio.to_thread(self._store.get_active_alerts)
        if not alerts:
            return []

        groups: dict[str, list[PriceAlert]] = {}
        for alert in alerts:
            groups.setdefault(alert.symbol.upper(), []).append(alert)

        triggered: list[str] = []
        for index, (symbol, group) in enumerate(groups.items()):
            if index:
                await self._sleep(self._group_delay)
            quote = await self._price_source.fetch_price(symbol)
            if quote is None:
                logger.warning("No price for %s, skipping %d alerts", symbol, len(group))
                continue
            for alert in group:
                if alert_matches(alert, quote.price) and await self._fire(alert, quote.price):
                    triggered.append(alert.id)

        if triggered:
            logger.info("Triggered %d price alerts", len(triggered))
        return triggered

    async def _fire(self, alert: PriceAlert, price: float) -> bool:
        message = format_alert_triggered(alert, price)
        try:
            await self._channel.send(alert.chat_id, message, RenderMode.HTML)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to send price alert %s: %s", alert.id, exc)
            await asyncio.to_thread(
                self._store.add_push_record,
                user_id=alert.user_id,
                chat_id=alert.chat_id,
                category=Category.ALERTS,
                content=message,
                success=False,
                error_message=str(exc) or type(exc).__name__,
            )
            return False

        if not await asyncio.to_thread(self._store.trigger_alert, alert.id):
            logger.warning("Alert %s was already triggered", alert.id)
            return False
        await asyncio.to_thread(
            self._store.add_push_record,
            user_id=alert.user_id,
            chat_id=alert.chat_id,
            category=Category.ALERTS,
            content=message,
            success=True,
        )
        logger.info(
            "Price alert triggered: %s %s %s %s at %s",
            alert.id, alert.symbol, AlertCondition(alert.condition).value,
            alert.target_price, price,
        )
        return True
