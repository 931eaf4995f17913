"""Telegram delivery via python-telegram-bot."""
import logging

import telegram
from telegram.error import TelegramError, TimedOut
from tenacity import (AsyncRetrying, before_sleep_log, retry_if_exception_type,
                      stop_after_attempt, wait_fixed)

from market_data_push.notifications.channel import DeliveryError, RenderMode

logger = logging.getLogger(__name__)

TIMEOUT_RETRY_DELAY = 5.0


class TelegramChannel:
    """NotificationChannel backed by a telegram.Bot.

    A send that times out is retried once after TIMEOUT_RETRY_DELAY; any other
    Telegram error, or a second timeout, raises DeliveryError.
    """

    def __init__(
        self,
        token: str,
        *,
        bot: telegram.Bot | None = None,
        retry_delay: float = TIMEOUT_RETRY_DELAY,
    ) -> None:
        if bot is None and not token:
            raise ValueError("Telegram bot token is required (TG_BOT_TOKEN)")
        self._bot = bot or telegram.Bot(token)
        self._retry_delay = retry_delay

    async def send(
        self,
        chat_id: int,
        text: str,
        render_mode: RenderMode = RenderMode.HTML,
    ) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(TimedOut),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._bot.send_message(
                        chat_id=chat_id,
                        text=text,
                        parse_mode=RenderMode(render_mode).value,
                    )
        except TimedOut as exc:
            raise DeliveryError(chat_id, f"Timed out: {exc}") from exc
        except TelegramError as exc:
            raise DeliveryError(chat_id, str(exc)) from exc

    async def answer_interaction(
        self, interaction_id: str, text: str | None = None
    ) -> None:
        try:
            await self._bot.answer_callback_query(interaction_id, text=text)
        except TelegramError as exc:
            raise DeliveryError(interaction_id, str(exc)) from exc

    async def close(self) -> None:
        """Release the bot's HTTP resources."""
        await self._bot.shutdown()
