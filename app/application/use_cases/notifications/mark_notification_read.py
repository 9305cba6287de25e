"""Use case for marking a single notification as read."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.domain.entities import Notification
from app.domain.exceptions import NotFoundError
from app.infrastructure.repositories import NotificationRepository


def mark_notification_read(
    session: Session, notification_id: UUID, *, user_id: int
) -> Notification:
    """Mark the notification as read; repeating the call changes nothing."""

    notification = NotificationRepository(session).mark_as_read(
        notification_id, user_id=user_id
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification
