"""Connection management helpers for notification websockets."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import defaultdict
from typing import Any, Callable, DefaultDict

from app.config import OverflowPolicy, Settings
from app.domain.exceptions import DeliveryFailure

from .channel import CLOSE_GOING_AWAY, DeliveryChannel, MessageSink

logger = logging.getLogger(__name__)


class NotificationConnectionManager:
    """Track live push connections grouped by user and fan events out to them.

    The per-user sets are guarded by a short-held lock. ``fan_out`` works on a
    snapshot taken under the lock, so registration, unregistration and fan-out
    are linearizable per user without holding the lock while enqueuing.
    """

    def __init__(
        self,
        *,
        queue_size: int = 100,
        overflow_policy: OverflowPolicy = "drop_oldest",
        heartbeat_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.queue_size = queue_size
        self.overflow_policy = overflow_policy
        self.heartbeat_timeout = heartbeat_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._connections: DefaultDict[int, dict[str, DeliveryChannel]] = defaultdict(dict)
        self._owners: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationConnectionManager":
        return cls(
            queue_size=settings.notification_queue_size,
            overflow_policy=settings.notification_overflow_policy,
            heartbeat_timeout=settings.heartbeat_timeout_seconds,
        )

    async def connect(
        self, user_id: int, websocket: MessageSink, *, role: str | None = None
    ) -> DeliveryChannel:
        """Accept ``websocket`` and register a started channel for ``user_id``."""

        await websocket.accept()  # type: ignore[attr-defined]
        channel = self.open_channel(user_id, websocket, role=role)
        channel.start()
        return channel

    def open_channel(
        self, user_id: int, sink: MessageSink, *, role: str | None = None
    ) -> DeliveryChannel:
        """Create a channel for ``sink`` and register it without starting it."""

        channel = DeliveryChannel(
            sink,
            user_id=user_id,
            capacity=self.queue_size,
            role=role,
            overflow_policy=self.overflow_policy,
            on_closed=self._on_channel_closed,
            clock=self._clock,
        )
        self.register(user_id, channel)
        return channel

    def register(self, user_id: int, channel: DeliveryChannel) -> None:
        """Add ``channel`` to the set tracked for ``user_id``."""

        with self._lock:
            self._connections[user_id][channel.connection_id] = channel
            self._owners[channel.connection_id] = user_id
            total = len(self._connections[user_id])
        logger.info(
            "Registered connection %s for user %s (%d live)",
            channel.connection_id,
            user_id,
            total,
        )

    def unregister(self, connection_id: str) -> DeliveryChannel | None:
        """Remove the connection identified by ``connection_id`` if present."""

        with self._lock:
            user_id = self._owners.pop(connection_id, None)
            if user_id is None:
                return None
            connections = self._connections.get(user_id)
            channel = connections.pop(connection_id, None) if connections else None
            if connections is not None and not connections:
                self._connections.pop(user_id, None)
        logger.info("Unregistered connection %s for user %s", connection_id, user_id)
        return channel

    def connections_for(self, user_id: int) -> list[DeliveryChannel]:
        with self._lock:
            return list(self._connections.get(user_id, {}).values())

    def connection_count(self, user_id: int | None = None) -> int:
        with self._lock:
            if user_id is not None:
                return len(self._connections.get(user_id, {}))
            return len(self._owners)

    def touch(self, connection_id: str) -> None:
        """Refresh the heartbeat timestamp of ``connection_id``."""

        with self._lock:
            user_id = self._owners.get(connection_id)
            connections = self._connections.get(user_id, {}) if user_id is not None else {}
            channel = connections.get(connection_id)
        if channel is not None:
            channel.touch()

    def fan_out(self, user_id: int, message: dict[str, Any]) -> int:
        """Enqueue ``message`` on every live connection of ``user_id``.

        Returns the number of connections that accepted the message. Must be
        called from the event loop thread; it never awaits.
        """

        delivered = self._offer_all(self.connections_for(user_id), message)
        if not delivered:
            logger.debug("No live connection accepted event for user %s", user_id)
        return delivered

    def admin_connections(self) -> list[DeliveryChannel]:
        with self._lock:
            return [
                channel
                for connections in self._connections.values()
                for channel in connections.values()
                if channel.is_admin
            ]

    def fan_out_to_admins(
        self, message: dict[str, Any], exclude_user_id: int | None = None
    ) -> int:
        """Enqueue ``message`` on every live connection opened by an administrator.

        Connections of ``exclude_user_id`` are skipped.
        """

        channels = [
            channel
            for channel in self.admin_connections()
            if channel.user_id != exclude_user_id
        ]
        delivered = self._offer_all(channels, message)
        logger.debug("Admin event accepted by %d connection(s)", delivered)
        return delivered

    async def send_to_user(self, user_id: int, message: dict[str, Any]) -> int:
        """Coroutine wrapper around :meth:`fan_out` for ``anyio.from_thread``."""

        return self.fan_out(user_id, message)

    async def send_to_admins(
        self, message: dict[str, Any], exclude_user_id: int | None = None
    ) -> int:
        return self.fan_out_to_admins(message, exclude_user_id)

    @staticmethod
    def _offer_all(channels: list[DeliveryChannel], message: dict[str, Any]) -> int:
        delivered = 0
        for channel in channels:
            try:
                channel.offer(dict(message))
            except DeliveryFailure as exc:
                logger.warning("%s", exc)
                continue
            delivered += 1
        return delivered

    def stale_connections(self, now: float | None = None) -> list[DeliveryChannel]:
        moment = self._clock() if now is None else now
        with self._lock:
            channels = [
                channel
                for connections in self._connections.values()
                for channel in connections.values()
            ]
        return [
            channel
            for channel in channels
            if channel.idle_for(moment) > self.heartbeat_timeout
        ]

    async def evict_stale(self, now: float | None = None) -> list[str]:
        """Close and unregister connections that missed the heartbeat window."""

        evicted: list[str] = []
        for channel in self.stale_connections(now):
            logger.info(
                "Evicting connection %s for user %s after %.1fs without heartbeat",
                channel.connection_id,
                channel.user_id,
                channel.idle_for(now),
            )
            self.unregister(channel.connection_id)
            await channel.close(code=CLOSE_GOING_AWAY)
            evicted.append(channel.connection_id)
        return evicted

    async def run_heartbeat_monitor(self, interval: float) -> None:
        """Evict stale connections every ``interval`` seconds until cancelled."""

        while True:
            await asyncio.sleep(interval)
            await self.evict_stale()

    async def close_all(self) -> None:
        with self._lock:
            channels = [
                channel
                for connections in self._connections.values()
                for channel in connections.values()
            ]
        for channel in channels:
            await channel.close(code=CLOSE_GOING_AWAY)

    def _on_channel_closed(self, channel: DeliveryChannel) -> None:
        self.unregister(channel.connection_id)


__all__ = ["NotificationConnectionManager"]
