"""Realtime notification helpers for the infrastructure layer."""

from .channel import (
    CLOSE_GOING_AWAY,
    CLOSE_NORMAL,
    CLOSE_TRY_AGAIN_LATER,
    DeliveryChannel,
    MessageSink,
)
from .manager import NotificationConnectionManager
from .publisher import (
    ADMIN_NOTIFICATION_EVENT,
    NEW_NOTIFICATION_EVENT,
    NotificationPublisher,
    serialize_notification,
)

__all__ = [
    "ADMIN_NOTIFICATION_EVENT",
    "CLOSE_GOING_AWAY",
    "CLOSE_NORMAL",
    "CLOSE_TRY_AGAIN_LATER",
    "DeliveryChannel",
    "MessageSink",
    "NotificationConnectionManager",
    "NotificationPublisher",
    "NEW_NOTIFICATION_EVENT",
    "serialize_notification",
]
