from .notification import (
    NotificationCreate,
    NotificationOperationStatus,
    NotificationRead,
    UnreadCountRead,
)

__all__ = [
    "NotificationCreate",
    "NotificationOperationStatus",
    "NotificationRead",
    "UnreadCountRead",
]
