"""SQLAlchemy model for persisted notifications."""

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Integer, String, Text, Uuid
from sqlalchemy.sql import expression

from app.domain.entities import NotificationType
from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id = Column(Integer, nullable=False, index=True)
    type = Column(
        Enum(
            NotificationType,
            name="notification_type",
            native_enum=False,
            validate_strings=True,
            values_callable=lambda members: [member.value for member in members],
            length=32,
        ),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    is_read = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    created_at = Column(
        DateTime(), nullable=False, default=now_in_app_naive_datetime, index=True
    )


__all__ = ["NotificationModel"]
