"""Domain entities exposed by the application."""

from .notification import Notification, NotificationType
from .principal import ADMIN_ROLE, Principal

__all__ = [
    "ADMIN_ROLE",
    "Notification",
    "NotificationType",
    "Principal",
]
