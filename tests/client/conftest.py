"""Fakes shared by the client tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from app.domain.entities import NotificationType
from app.domain.exceptions import NotFoundError
from app.interfaces.api.schemas import NotificationOperationStatus, NotificationRead

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_notification(
    minutes: int = 0,
    *,
    is_read: bool = False,
    title: str | None = None,
    notification_id: UUID | None = None,
) -> NotificationRead:
    return NotificationRead(
        id=notification_id or uuid4(),
        recipient_id=1,
        type=NotificationType.SYSTEM,
        title=title or f"Notification at +{minutes}m",
        message="Body",
        is_read=is_read,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class Gate:
    """Pause a fake call: ``entered`` fires when it starts, ``release`` lets it finish."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()


class FakeNotificationApi:
    """In-memory stand-in for :class:`NotificationApiClient`.

    ``list_notifications`` answers with the server content as of the moment it
    was called; mutations change the server content when they complete.
    """

    def __init__(self, items=()) -> None:
        self.server: dict[UUID, NotificationRead] = {item.id: item for item in items}
        self.calls: list[str] = []
        self._failures: dict[str, Exception] = {}
        self._gates: dict[str, Gate] = {}

    def fail_next(self, method: str, exc: Exception) -> None:
        self._failures[method] = exc

    def hold(self, method: str) -> Gate:
        gate = Gate()
        self._gates[method] = gate
        return gate

    def publish(self, item: NotificationRead) -> NotificationRead:
        self.server[item.id] = item
        return item

    async def list_notifications(self) -> list[NotificationRead]:
        snapshot = list(self.server.values())
        await self._enter("list_notifications")
        return snapshot

    async def mark_read(self, notification_id: UUID) -> NotificationRead:
        await self._enter("mark_read")
        item = self.server.get(notification_id)
        if item is None:
            raise NotFoundError("missing")
        item = item.model_copy(update={"is_read": True})
        self.server[notification_id] = item
        return item

    async def mark_all_read(self) -> NotificationOperationStatus:
        await self._enter("mark_all_read")
        unread = [item for item in self.server.values() if not item.is_read]
        for item in unread:
            self.server[item.id] = item.model_copy(update={"is_read": True})
        return NotificationOperationStatus(updated=len(unread))

    async def delete(self, notification_id: UUID) -> NotificationOperationStatus:
        await self._enter("delete")
        if self.server.pop(notification_id, None) is None:
            raise NotFoundError("missing")
        return NotificationOperationStatus()

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        gate = self._gates.pop(method, None)
        if gate is not None:
            gate.entered.set()
            await gate.release.wait()
        failure = self._failures.pop(method, None)
        if failure is not None:
            raise failure


async def _eventually(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def make_notification_read():
    return make_notification


@pytest.fixture
def fake_api() -> FakeNotificationApi:
    return FakeNotificationApi()


@pytest.fixture
def eventually():
    return _eventually
