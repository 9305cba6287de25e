"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.domain.entities import Notification, NotificationType


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotificationCreate(_CamelModel):
    """Payload used by administrators to publish a notification."""

    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    copy_to_admins: bool = False

    @field_validator("title", "message")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class NotificationRead(_CamelModel):
    """Representation of a notification delivered to the client.

    The same shape is used for REST responses and ``new_notification`` push
    events.
    """

    id: UUID
    recipient_id: int | None = None
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id,
            recipient_id=notification.recipient_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            is_read=notification.is_read,
            metadata=notification.metadata or {},
            created_at=notification.created_at,
        )


class NotificationOperationStatus(_CamelModel):
    """Acknowledgement returned by bulk and delete operations."""

    success: bool = True
    updated: int | None = None


class UnreadCountRead(_CamelModel):
    unread_count: int


__all__ = [
    "NotificationCreate",
    "NotificationOperationStatus",
    "NotificationRead",
    "UnreadCountRead",
]
