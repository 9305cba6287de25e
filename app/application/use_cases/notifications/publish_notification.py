"""Use case that turns a business event into a delivered notification."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.entities import Notification, NotificationType
from app.domain.exceptions import InvalidNotificationError, PersistenceFailure
from app.infrastructure.notifications import NotificationPublisher
from app.infrastructure.repositories import NotificationRepository
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)


def publish_notification(
    session: Session,
    publisher: NotificationPublisher,
    *,
    recipient_id: int,
    notification_type: NotificationType | str,
    title: str,
    message: str,
    metadata: Mapping[str, Any] | None = None,
    copy_to_admins: bool = False,
) -> Notification:
    """Persist a notification for ``recipient_id`` and push it to live clients.

    The notification is committed before any delivery attempt, so a later
    fetch observes it even when nobody was connected. A store failure raises
    :class:`PersistenceFailure` and nothing is pushed. Delivery problems are
    absorbed by the publisher. With ``copy_to_admins`` administrator
    connections also receive a live copy.
    """

    try:
        parsed_type = NotificationType.parse(notification_type)
    except ValueError as exc:
        raise InvalidNotificationError(str(exc)) from exc
    if not title or not title.strip():
        raise InvalidNotificationError("Notification title must not be empty")
    if not message or not message.strip():
        raise InvalidNotificationError("Notification message must not be empty")

    notification = Notification(
        id=None,
        recipient_id=recipient_id,
        type=parsed_type,
        title=title,
        message=message,
        metadata=dict(metadata or {}),
        is_read=False,
        created_at=now_in_app_timezone(),
    )
    try:
        saved = NotificationRepository(session).create(notification)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(
            "Could not persist %s notification for user %s: %s",
            parsed_type.value,
            recipient_id,
            exc,
        )
        raise PersistenceFailure("Notification could not be stored") from exc

    delivered = publisher.dispatch(saved)
    logger.info(
        "Published notification %s to user %s (%d live connection(s))",
        saved.id,
        recipient_id,
        delivered,
    )
    if copy_to_admins:
        publisher.dispatch_to_admins(saved)
    return saved
