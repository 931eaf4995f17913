"""Outbound notification channels."""
from market_data_push.notifications.channel import (DeliveryError,
                                                    NotificationChannel,
                                                    RenderMode)
from market_data_push.notifications.telegram import TelegramChannel

__all__ = ["DeliveryError", "NotificationChannel", "RenderMode", "TelegramChannel"]
