"""Local, ordered notification cache kept by the client."""

from __future__ import annotations

from bisect import insort
from enum import Enum
from typing import Iterable, Iterator
from uuid import UUID

from app.interfaces.api.schemas import NotificationRead


class ConnectionState(str, Enum):
    """Lifecycle of the push connection as seen by the client."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RESYNCING = "resyncing"


def _sort_key(notification: NotificationRead) -> tuple[float, str]:
    # Negated so ascending ``bisect`` order is newest first; ties by id desc.
    return (-notification.created_at.timestamp(), _negated_id(notification.id))


def _negated_id(identifier: UUID) -> str:
    return format((1 << 128) - 1 - identifier.int, "032x")


class NotificationCache:
    """Notifications unique by id, ordered by ``created_at`` descending.

    ``unread_count`` is derived from the items, so it can never drift from
    them.
    """

    def __init__(self, items: Iterable[NotificationRead] = ()) -> None:
        self._entries: list[tuple[tuple[float, str], NotificationRead]] = []
        self._by_id: dict[UUID, NotificationRead] = {}
        self.replace(items)

    def replace(self, items: Iterable[NotificationRead]) -> None:
        """Discard the current content and load ``items`` (duplicates collapse)."""

        by_id: dict[UUID, NotificationRead] = {}
        for item in items:
            by_id.setdefault(item.id, item)
        self._by_id = by_id
        self._entries = sorted(
            ((_sort_key(item), item) for item in by_id.values()), key=lambda entry: entry[0]
        )

    def copy(self) -> "NotificationCache":
        clone = NotificationCache()
        clone._entries = list(self._entries)
        clone._by_id = dict(self._by_id)
        return clone

    @property
    def items(self) -> list[NotificationRead]:
        return [item for _, item in self._entries]

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._by_id.values() if not item.is_read)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[NotificationRead]:
        return iter(self.items)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._by_id

    def get(self, notification_id: UUID) -> NotificationRead | None:
        return self._by_id.get(notification_id)

    def insert(self, item: NotificationRead) -> bool:
        """Add ``item`` at its sorted position; return ``False`` for a duplicate id."""

        if item.id in self._by_id:
            return False
        self._by_id[item.id] = item
        insort(self._entries, (_sort_key(item), item), key=lambda entry: entry[0])
        return True

    def remove(self, notification_id: UUID) -> NotificationRead | None:
        item = self._by_id.pop(notification_id, None)
        if item is not None:
            self._entries = [entry for entry in self._entries if entry[1].id != notification_id]
        return item

    def mark_read(self, notification_id: UUID) -> bool:
        """Flag one item as read; return ``True`` when something changed."""

        item = self._by_id.get(notification_id)
        if item is None or item.is_read:
            return False
        self._swap(item, item.model_copy(update={"is_read": True}))
        return True

    def mark_many_read(self, notification_ids: Iterable[UUID]) -> int:
        """Flag the given ids as read; unknown or already read ids are skipped."""

        changed = 0
        for notification_id in notification_ids:
            if self.mark_read(notification_id):
                changed += 1
        return changed

    def _swap(self, old: NotificationRead, new: NotificationRead) -> None:
        self._by_id[new.id] = new
        self._entries = [
            (key, new if item is old else item) for key, item in self._entries
        ]


__all__ = ["ConnectionState", "NotificationCache"]
