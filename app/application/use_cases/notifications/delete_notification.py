"""Use case for deleting a notification."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.domain.exceptions import NotFoundError
from app.infrastructure.repositories import NotificationRepository


def delete_notification(session: Session, notification_id: UUID, *, user_id: int) -> None:
    """Permanently delete the notification owned by ``user_id``."""

    if not NotificationRepository(session).delete(notification_id, user_id=user_id):
        raise NotFoundError("Notification not found")
