"""Notifier module for SaleWatch.

Provides batched Discord notifications and Twilio SMS alerts.
"""

from salewatch.notifier.base import (
    BaseNotifier,
    NotificationContent,
    NotificationError,
    OutOfRequestsError,
    create_notification_content,
)
from salewatch.notifier.discord import DiscordNotifier
from salewatch.notifier.sms import SmsNotifier, SmsReceipt

__all__ = [
    "BaseNotifier",
    "NotificationContent",
    "NotificationError",
    "OutOfRequestsError",
    "DiscordNotifier",
    "SmsNotifier",
    "SmsReceipt",
    "create_notification_content",
]
