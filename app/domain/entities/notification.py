"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class NotificationType(str, Enum):
    """Closed set of notification kinds understood by the platform."""

    TRACK_UPDATE = "track_update"
    NEW_COMMENT = "new_comment"
    ACHIEVEMENT = "achievement"
    MESSAGE = "message"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value: "NotificationType | str") -> "NotificationType":
        """Return the enum member for ``value`` or raise ``ValueError``."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unsupported notification type '{value}'. Expected one of: {allowed}"
            ) from exc


@dataclass
class Notification:
    """Information message delivered to a specific user.

    Only ``is_read`` changes after creation, and only from ``False`` to
    ``True``.
    """

    id: UUID | None
    recipient_id: int
    type: NotificationType
    title: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    created_at: datetime | None = None


__all__ = ["Notification", "NotificationType"]
