"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.domain.entities import Notification, NotificationType
from app.infrastructure.models import NotificationModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide CRUD operations for :class:`Notification` objects.

    Every read and write is scoped to a recipient so callers can never touch
    another user's notifications.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(
        self,
        user_id: int,
        *,
        limit: int | None = None,
    ) -> Sequence[Notification]:
        query = (
            select(NotificationModel)
            .where(NotificationModel.recipient_id == user_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in self.session.scalars(query)]

    def get_for_user(self, notification_id: UUID, *, user_id: int) -> Notification | None:
        model = self._get_model(notification_id, user_id=user_id)
        return self._to_entity(model) if model is not None else None

    def count_unread(self, user_id: int) -> int:
        query = select(func.count(NotificationModel.id)).where(
            NotificationModel.recipient_id == user_id,
            NotificationModel.is_read.is_(False),
        )
        return int(self.session.scalar(query) or 0)

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel(
            recipient_id=notification.recipient_id,
            type=NotificationType.parse(notification.type),
            title=notification.title,
            message=notification.message,
            metadata_=dict(notification.metadata or {}),
            is_read=notification.is_read,
            created_at=ensure_app_naive_datetime(
                notification.created_at or now_in_app_timezone()
            ),
        )
        if notification.id is not None:
            model.id = notification.id
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def mark_as_read(self, notification_id: UUID, *, user_id: int) -> Notification | None:
        model = self._get_model(notification_id, user_id=user_id)
        if model is None:
            return None
        if not model.is_read:
            model.is_read = True
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def mark_all_as_read(self, user_id: int) -> int:
        result = self.session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.recipient_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return int(result.rowcount or 0)

    def delete(self, notification_id: UUID, *, user_id: int) -> bool:
        model = self._get_model(notification_id, user_id=user_id)
        if model is None:
            return False
        self.session.delete(model)
        self.session.commit()
        return True

    def _get_model(self, notification_id: UUID, *, user_id: int) -> NotificationModel | None:
        query = select(NotificationModel).where(
            NotificationModel.id == notification_id,
            NotificationModel.recipient_id == user_id,
        )
        return self.session.scalars(query).first()

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=NotificationType.parse(model.type),
            title=model.title,
            message=model.message,
            metadata=dict(model.metadata_ or {}),
            is_read=bool(model.is_read),
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["NotificationRepository"]
