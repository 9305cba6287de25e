"""Utility helpers to push notifications to websocket subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from anyio import from_thread

from app.domain.entities import Notification

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)

NEW_NOTIFICATION_EVENT = "new_notification"
ADMIN_NOTIFICATION_EVENT = "admin_notification"


class NotificationPublisher:
    """Serialize notifications and hand them to the connection registry.

    Delivery is best effort: every failure is logged and absorbed here so the
    caller's already committed notification is never affected.
    """

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager

    def dispatch(self, notification: Notification) -> int:
        """Fan ``notification`` out to its recipient's live connections.

        Returns the number of connections that accepted the event.
        """

        message = {"type": NEW_NOTIFICATION_EVENT, "data": serialize_notification(notification)}
        return self._deliver(
            notification,
            self._manager.fan_out,
            self._manager.send_to_user,
            notification.recipient_id,
            message,
        )

    def dispatch_to_admins(self, notification: Notification) -> int:
        """Copy ``notification`` to every administrator connection.

        The copy travels as an ``admin_notification`` event so it never lands
        in an administrator's own notification list. The recipient's own
        connections are skipped; they already got ``new_notification``.
        """

        message = {
            "type": ADMIN_NOTIFICATION_EVENT,
            "data": serialize_notification(notification),
        }
        return self._deliver(
            notification,
            self._manager.fan_out_to_admins,
            self._manager.send_to_admins,
            message,
            notification.recipient_id,
        )

    def _deliver(
        self,
        notification: Notification,
        fan_out: Callable[..., int],
        send: Callable[..., Awaitable[int]],
        *args: Any,
    ) -> int:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous routes run in a worker thread; hop onto the loop so
            # the delivery queues are only touched from the loop thread.
            try:
                return from_thread.run(send, *args)
            except RuntimeError as exc:
                logger.warning(
                    "Skipping live delivery of notification %s: no event loop (%s)",
                    notification.id,
                    exc,
                )
                return 0
        return fan_out(*args)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the wire representation shared by REST and push payloads."""

    return {
        "id": str(notification.id) if notification.id is not None else None,
        "recipientId": notification.recipient_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "isRead": notification.is_read,
        "metadata": dict(notification.metadata or {}),
        "createdAt": notification.created_at.isoformat()
        if notification.created_at
        else None,
    }


__all__ = [
    "ADMIN_NOTIFICATION_EVENT",
    "NEW_NOTIFICATION_EVENT",
    "NotificationPublisher",
    "serialize_notification",
]
