"""Unit tests for the connection registry and per-connection delivery."""

from __future__ import annotations

import asyncio

import pytest

from app.domain.entities import ADMIN_ROLE, Notification, NotificationType
from app.infrastructure.notifications import (
    ADMIN_NOTIFICATION_EVENT,
    CLOSE_GOING_AWAY,
    CLOSE_TRY_AGAIN_LATER,
    DeliveryChannel,
    NotificationConnectionManager,
    NotificationPublisher,
)

pytestmark = pytest.mark.anyio


class FakeSocket:
    """Records frames; ``blocked`` makes ``send_json`` hang like a wedged client."""

    def __init__(self, *, blocked: bool = False) -> None:
        self.sent: list[dict] = []
        self.closed_with: int | None = None
        self.accepted = False
        self._gate = asyncio.Event()
        if not blocked:
            self._gate.set()

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data) -> None:
        await self._gate.wait()
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def unblock(self) -> None:
        self._gate.set()


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _event(number: int) -> dict:
    return {"type": "new_notification", "data": {"id": str(number)}}


async def test_register_and_unregister_track_connections_per_user() -> None:
    manager = NotificationConnectionManager()
    first = manager.open_channel(1, FakeSocket())
    second = manager.open_channel(1, FakeSocket())
    other = manager.open_channel(2, FakeSocket())

    assert manager.connection_count(1) == 2
    assert manager.connection_count() == 3

    assert manager.unregister(first.connection_id) is first
    assert manager.unregister(first.connection_id) is None
    assert [channel.connection_id for channel in manager.connections_for(1)] == [
        second.connection_id
    ]
    assert manager.connections_for(2) == [other]


async def test_connect_accepts_and_starts_delivery() -> None:
    manager = NotificationConnectionManager()
    socket = FakeSocket()

    channel = await manager.connect(3, socket)
    manager.fan_out(3, _event(1))
    await asyncio.wait_for(channel.join(), timeout=1)

    assert socket.accepted is True
    assert socket.sent == [_event(1)]
    await channel.close()


async def test_fan_out_without_connections_is_not_an_error() -> None:
    manager = NotificationConnectionManager()

    assert manager.fan_out(42, _event(1)) == 0


async def test_fan_out_reaches_every_connection_of_the_user_only() -> None:
    manager = NotificationConnectionManager()
    sockets = [FakeSocket(), FakeSocket()]
    stranger = FakeSocket()
    channels = [await manager.connect(1, socket) for socket in sockets]
    stranger_channel = await manager.connect(2, stranger)

    assert manager.fan_out(1, _event(1)) == 2
    for channel in channels:
        await asyncio.wait_for(channel.join(), timeout=1)

    assert [socket.sent for socket in sockets] == [[_event(1)], [_event(1)]]
    assert stranger.sent == []
    for channel in [*channels, stranger_channel]:
        await channel.close()


async def test_each_connection_receives_events_in_publish_order() -> None:
    manager = NotificationConnectionManager(queue_size=50)
    sockets = [FakeSocket(blocked=True), FakeSocket()]
    channels = [await manager.connect(1, socket) for socket in sockets]

    for number in range(20):
        manager.fan_out(1, _event(number))
    sockets[0].unblock()
    for channel in channels:
        await asyncio.wait_for(channel.join(), timeout=1)

    expected = [_event(number) for number in range(20)]
    assert sockets[0].sent == expected
    assert sockets[1].sent == expected
    for channel in channels:
        await channel.close()


async def test_full_queue_drops_oldest_event_without_blocking() -> None:
    manager = NotificationConnectionManager(queue_size=3, overflow_policy="drop_oldest")
    socket = FakeSocket()
    channel = manager.open_channel(1, socket)

    for number in range(5):
        assert manager.fan_out(1, _event(number)) == 1

    assert channel.dropped == 2
    channel.start()
    await asyncio.wait_for(channel.join(), timeout=1)
    assert socket.sent == [_event(2), _event(3), _event(4)]
    await channel.close()


async def test_full_queue_disconnects_slow_consumer_when_configured() -> None:
    manager = NotificationConnectionManager(queue_size=2, overflow_policy="disconnect")
    socket = FakeSocket(blocked=True)
    channel = manager.open_channel(1, socket)

    assert manager.fan_out(1, _event(1)) == 1
    assert manager.fan_out(1, _event(2)) == 1
    assert manager.fan_out(1, _event(3)) == 0

    assert channel.closed is True
    assert manager.connection_count(1) == 0
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert socket.closed_with == CLOSE_TRY_AGAIN_LATER


async def test_stale_connections_are_evicted_after_heartbeat_timeout() -> None:
    clock = FakeClock()
    manager = NotificationConnectionManager(heartbeat_timeout=30, clock=clock)
    quiet_socket = FakeSocket()
    chatty_socket = FakeSocket()
    quiet = manager.open_channel(1, quiet_socket)
    chatty = manager.open_channel(1, chatty_socket)

    clock.now += 20
    manager.touch(chatty.connection_id)
    clock.now += 15

    evicted = await manager.evict_stale()

    assert evicted == [quiet.connection_id]
    assert quiet_socket.closed_with == CLOSE_GOING_AWAY
    assert manager.connections_for(1) == [chatty]
    await chatty.close()


async def test_send_failure_unregisters_the_connection() -> None:
    class BrokenSocket(FakeSocket):
        async def send_json(self, data) -> None:
            raise ConnectionResetError("peer went away")

    manager = NotificationConnectionManager()
    channel = await manager.connect(1, BrokenSocket())

    manager.fan_out(1, _event(1))
    await asyncio.wait_for(channel.join(), timeout=1)

    assert channel.closed is True
    assert manager.connection_count(1) == 0
    await channel.close()


async def test_closed_channel_rejects_new_events() -> None:
    channel = DeliveryChannel(FakeSocket(), user_id=1, capacity=1)
    await channel.close()

    manager = NotificationConnectionManager()
    manager.register(1, channel)

    assert manager.fan_out(1, _event(1)) == 0


async def test_admin_fan_out_reaches_only_admin_connections() -> None:
    manager = NotificationConnectionManager()
    admin_socket = FakeSocket()
    learner_socket = FakeSocket()
    recipient_admin_socket = FakeSocket()
    channels = [
        await manager.connect(1, admin_socket, role=ADMIN_ROLE),
        await manager.connect(2, learner_socket),
        await manager.connect(3, recipient_admin_socket, role=ADMIN_ROLE),
    ]

    assert manager.fan_out_to_admins(_event(1), exclude_user_id=3) == 1
    for channel in channels:
        await asyncio.wait_for(channel.join(), timeout=1)

    assert admin_socket.sent == [_event(1)]
    assert learner_socket.sent == []
    assert recipient_admin_socket.sent == []
    for channel in channels:
        await channel.close()


async def test_publisher_sends_admin_copy_as_separate_event() -> None:
    manager = NotificationConnectionManager()
    admin_socket = FakeSocket()
    recipient_socket = FakeSocket()
    admin_channel = await manager.connect(1, admin_socket, role=ADMIN_ROLE)
    recipient_channel = await manager.connect(4, recipient_socket)
    publisher = NotificationPublisher(manager)
    notification = Notification(
        id=None,
        recipient_id=4,
        type=NotificationType.MESSAGE,
        title="Hello",
        message="New direct message",
    )

    assert publisher.dispatch(notification) == 1
    assert publisher.dispatch_to_admins(notification) == 1
    for channel in (admin_channel, recipient_channel):
        await asyncio.wait_for(channel.join(), timeout=1)

    assert [frame["type"] for frame in admin_socket.sent] == [ADMIN_NOTIFICATION_EVENT]
    assert admin_socket.sent[0]["data"]["recipientId"] == 4
    assert [frame["type"] for frame in recipient_socket.sent] == ["new_notification"]
    for channel in (admin_channel, recipient_channel):
        await channel.close()


@pytest.mark.parametrize("policy", ["drop_oldest", "disconnect"])
async def test_control_frames_never_displace_queued_events(policy: str) -> None:
    manager = NotificationConnectionManager(queue_size=2, overflow_policy=policy)
    socket = FakeSocket()
    channel = manager.open_channel(1, socket)
    manager.fan_out(1, _event(1))

    assert channel.offer_control({"type": "pong"}) is True
    assert channel.offer_control({"type": "pong"}) is False

    assert channel.dropped == 0
    assert channel.closed is False
    channel.start()
    await asyncio.wait_for(channel.join(), timeout=1)
    assert socket.sent == [_event(1), {"type": "pong"}]
    await channel.close()
