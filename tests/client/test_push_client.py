"""Tests for the push channel client and its lifecycle."""

from __future__ import annotations

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close

from app.client import (
    Backoff,
    ClientSettings,
    ConnectionState,
    NotificationPushClient,
    NotificationReconciliationEngine,
    PushLifecycle,
)
from app.domain.exceptions import AuthError

pytestmark = pytest.mark.anyio

SETTINGS = ClientSettings(base_url="http://testserver")


class FakeConnection:
    def __init__(self) -> None:
        self.frames: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False

    def push(self, notification) -> None:
        self.frames.put_nowait(
            json.dumps(
                {"type": "new_notification", "data": notification.model_dump(mode="json", by_alias=True)}
            )
        )

    def drop(self, code: int = 1011) -> None:
        self.frames.put_nowait(ConnectionClosedError(Close(code, "bye"), None))

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str:
        frame = await self.frames.get()
        if isinstance(frame, Exception):
            raise frame
        return frame

    async def close(self) -> None:
        self.closed = True


class ScriptedConnector:
    """Hand out the scripted outcomes in order; the last one repeats."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def __call__(self, url: str, headers: dict[str, str]):
        self.calls.append((url, headers))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def _client(connector, *, max_attempts: int = 3, sleep=None) -> NotificationPushClient:
    return NotificationPushClient(
        "push-token",
        settings=SETTINGS,
        connector=connector,
        backoff=Backoff(
            base=0.5, cap=30.0, max_attempts=max_attempts, rng=lambda low, high: high
        ),
        sleep=sleep or RecordingSleep(),
    )


async def test_push_events_reach_subscribers_until_unsubscribed(
    make_notification_read, eventually
) -> None:
    connection = FakeConnection()
    connector = ScriptedConnector(connection)
    client = _client(connector)
    received = []
    subscription = client.subscribe(received.append)

    await client.open()
    first = make_notification_read(1)
    connection.frames.put_nowait(json.dumps({"type": "pong"}))
    connection.frames.put_nowait("not json")
    connection.push(first)
    await eventually(lambda: len(received) == 1)

    subscription.unsubscribe()
    connection.push(make_notification_read(2))
    await eventually(lambda: connection.frames.empty())
    await asyncio.sleep(0.05)
    await client.close()

    assert received == [first]
    assert connector.calls == [
        ("ws://testserver/notifications/ws", {"Authorization": "Bearer push-token"})
    ]
    assert connection.closed is True


async def test_rejected_credential_stops_reconnecting() -> None:
    connector = ScriptedConnector(AuthError("rejected"))
    sleep = RecordingSleep()
    client = _client(connector, sleep=sleep)
    events = []
    client.subscribe_lifecycle(events.append)

    await client.open()
    await asyncio.wait_for(client.wait_closed(), timeout=1)

    assert events == [PushLifecycle.CONNECTING, PushLifecycle.LOST]
    assert len(connector.calls) == 1
    assert sleep.delays == []
    assert isinstance(client.last_error, AuthError)


async def test_policy_violation_close_is_treated_as_rejected_credential() -> None:
    connection = FakeConnection()
    connection.drop(code=1008)
    connector = ScriptedConnector(connection)
    client = _client(connector)

    await client.open()
    await asyncio.wait_for(client.wait_closed(), timeout=1)

    assert len(connector.calls) == 1
    assert isinstance(client.last_error, AuthError)


async def test_reconnect_attempts_are_bounded() -> None:
    connector = ScriptedConnector(OSError("refused"))
    sleep = RecordingSleep()
    client = _client(connector, max_attempts=3, sleep=sleep)

    await client.open()
    await asyncio.wait_for(client.wait_closed(), timeout=1)

    assert sleep.delays == [0.5, 1.0, 2.0]
    assert len(connector.calls) == 4
    assert client.running is False


async def test_successful_handshake_resets_backoff() -> None:
    dropped = FakeConnection()
    dropped.drop()
    connector = ScriptedConnector(OSError("refused"), dropped, OSError("refused"))
    sleep = RecordingSleep()
    client = _client(connector, max_attempts=2, sleep=sleep)

    await client.open()
    await asyncio.wait_for(client.wait_closed(), timeout=1)

    assert sleep.delays == [0.5, 0.5, 1.0]
    assert len(connector.calls) == 4
    assert dropped.closed is True


async def test_lifecycle_drives_the_engine(fake_api, make_notification_read, eventually) -> None:
    existing = fake_api.publish(make_notification_read(0))
    connection = FakeConnection()
    connector = ScriptedConnector(connection, AuthError("expired"))
    push = _client(connector)
    engine = NotificationReconciliationEngine(fake_api, push)

    await engine.start()
    await eventually(lambda: engine.connection_state is ConnectionState.CONNECTED)
    assert fake_api.calls.count("list_notifications") == 2

    pushed = make_notification_read(5)
    connection.push(pushed)
    await eventually(lambda: len(engine.items) == 2)
    assert [item.id for item in engine.items] == [pushed.id, existing.id]
    assert engine.unread_count == 2

    connection.drop()
    await asyncio.wait_for(push.wait_closed(), timeout=1)
    assert engine.connection_state is ConnectionState.DISCONNECTED

    await engine.stop()
    assert engine.connection_state is ConnectionState.DISCONNECTED
