"""Use cases for publishing and managing notifications."""

from .count_unread_notifications import count_unread_notifications
from .delete_notification import delete_notification
from .list_notifications import list_notifications
from .mark_all_notifications_read import mark_all_notifications_read
from .mark_notification_read import mark_notification_read
from .publish_notification import publish_notification

__all__ = [
    "count_unread_notifications",
    "delete_notification",
    "list_notifications",
    "mark_all_notifications_read",
    "mark_notification_read",
    "publish_notification",
]
