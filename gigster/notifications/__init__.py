"""Outbound notifications, PDF delivery and provider circuit breakers."""

from gigster.notifications.dispatcher import (
    DeliveryStatus,
    NotificationDispatcher,
    SideEffectResult,
)
from gigster.notifications.email import EmailAttachment, EmailMessage, EmailProvider
from gigster.notifications.sms import SmsProvider

__all__ = [
    "DeliveryStatus",
    "EmailAttachment",
    "EmailMessage",
    "EmailProvider",
    "NotificationDispatcher",
    "SideEffectResult",
    "SmsProvider",
]
