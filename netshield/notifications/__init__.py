"""
NetShield - Notifications Module
"""

from netshield.notifications.types import Notification, CRITICAL_ALERT, HIGH_VOLUME
from netshield.notifications.dedup import AlertNotifier
from netshield.notifications.bus import NotificationBus
from netshield.notifications.webhook import WebhookNotifier

__all__ = [
    "Notification",
    "CRITICAL_ALERT",
    "HIGH_VOLUME",
    "AlertNotifier",
    "NotificationBus",
    "WebhookNotifier",
]
