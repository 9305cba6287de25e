"""Use case for marking every notification of a user as read."""

from sqlalchemy.orm import Session

from app.infrastructure.repositories import NotificationRepository


def mark_all_notifications_read(session: Session, user_id: int) -> int:
    """Mark all unread notifications of ``user_id`` and return how many changed."""

    return NotificationRepository(session).mark_all_as_read(user_id)
