"""Error taxonomy shared by the notification server and client."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification delivery and reconciliation errors."""


class InvalidNotificationError(NotificationError, ValueError):
    """Raised when a notification is rejected before it reaches the store."""


class PersistenceFailure(NotificationError):
    """Raised when the store could not durably commit a notification."""


class DeliveryFailure(NotificationError):
    """Raised when an event could not be handed to a live connection.

    Delivery is best effort, so this error is logged by the registry and never
    reaches the publisher.
    """

    def __init__(self, connection_id: str, reason: str) -> None:
        super().__init__(f"Delivery to connection {connection_id} failed: {reason}")
        self.connection_id = connection_id
        self.reason = reason


class TransientNetworkError(NotificationError):
    """Raised when a REST call fails, times out or the server errors out."""


class AuthError(NotificationError):
    """Raised when the bearer credential is rejected."""


class NotFoundError(NotificationError, LookupError):
    """Raised when a notification does not exist for the caller."""


__all__ = [
    "AuthError",
    "DeliveryFailure",
    "InvalidNotificationError",
    "NotFoundError",
    "NotificationError",
    "PersistenceFailure",
    "TransientNetworkError",
]
