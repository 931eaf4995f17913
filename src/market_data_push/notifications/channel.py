"""Outbound notification channel interface."""
from enum import Enum
from typing import Protocol


class RenderMode(str, Enum):
    """How the channel interprets message markup."""

    HTML = "HTML"
    MARKDOWN = "Markdown"
    MARKDOWN_V2 = "MarkdownV2"


class DeliveryError(Exception):
    """A message could not be delivered to one recipient."""

    def __init__(self, chat_id: int | str, message: str) -> None:
        super().__init__(message)
        self.chat_id = chat_id


class NotificationChannel(Protocol):
    """Protocol for the transport that delivers messages to recipients.

    Implementations raise DeliveryError on failure; callers decide whether a
    failure is fatal.
    """

    async def send(
        self,
        chat_id: int,
        text: str,
        render_mode: RenderMode = RenderMode.HTML,
    ) -> None:
        """Deliver ``text`` to one chat."""
        ...

    async def answer_interaction(
        self, interaction_id: str, text: str | None = None
    ) -> None:
        """Acknowledge an inbound interaction (e.g. a button press)."""
        ...
