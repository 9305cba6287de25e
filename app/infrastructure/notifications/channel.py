"""Per-connection delivery path for realtime notification events."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Protocol
from uuid import uuid4

from app.config import OverflowPolicy
from app.domain.entities import ADMIN_ROLE
from app.domain.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)

# Close codes sent to clients when the server ends a push connection.
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_TRY_AGAIN_LATER = 1013


class MessageSink(Protocol):
    """Subset of :class:`fastapi.WebSocket` used by a channel."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = CLOSE_NORMAL) -> None: ...


class DeliveryChannel:
    """Bounded FIFO queue drained by a single worker task.

    ``offer`` never blocks. When the queue is full the channel either drops the
    oldest queued event or gives up on the consumer, depending on
    ``overflow_policy``.
    """

    def __init__(
        self,
        sink: MessageSink,
        *,
        user_id: int,
        capacity: int,
        role: str | None = None,
        overflow_policy: OverflowPolicy = "drop_oldest",
        on_closed: Callable[["DeliveryChannel"], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("Delivery queue capacity must be positive")
        self.connection_id = uuid4().hex
        self.user_id = user_id
        self.role = role
        self.capacity = capacity
        self.overflow_policy = overflow_policy
        self.dropped = 0
        self._sink = sink
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=capacity)
        self._on_closed = on_closed
        self._clock = clock
        self._worker: asyncio.Task[None] | None = None
        self._closed = False
        self._sink_closed = False
        self.last_seen_at = clock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def touch(self) -> None:
        """Record client activity for heartbeat accounting."""

        self.last_seen_at = self._clock()

    def idle_for(self, now: float | None = None) -> float:
        return (self._clock() if now is None else now) - self.last_seen_at

    def start(self) -> None:
        """Spawn the worker task that drains the queue into the sink."""

        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(
                self._drain(), name=f"notification-channel-{self.connection_id}"
            )

    def offer(self, message: dict[str, Any]) -> None:
        """Enqueue ``message`` without waiting.

        Raises :class:`DeliveryFailure` when the message could not be queued.
        """

        if self._closed:
            raise DeliveryFailure(self.connection_id, "connection closed")
        try:
            self._queue.put_nowait(message)
            return
        except asyncio.QueueFull:
            pass

        if self.overflow_policy == "disconnect":
            logger.warning(
                "Disconnecting slow consumer %s for user %s (queue full at %d)",
                self.connection_id,
                self.user_id,
                self.capacity,
            )
            self._release()
            asyncio.get_running_loop().create_task(self.close(CLOSE_TRY_AGAIN_LATER))
            raise DeliveryFailure(self.connection_id, "queue full, consumer disconnected")

        self._queue.get_nowait()
        self._queue.task_done()
        self._queue.put_nowait(message)
        self.dropped += 1
        logger.warning(
            "Dropped oldest queued event for connection %s (user %s, %d dropped so far)",
            self.connection_id,
            self.user_id,
            self.dropped,
        )

    def offer_control(self, message: dict[str, Any]) -> bool:
        """Enqueue a protocol frame only if the queue has room.

        Unlike :meth:`offer` this never evicts a queued event or disconnects the
        consumer; it returns ``False`` when the frame was not queued.
        """

        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued message has been handed to the sink."""

        await self._queue.join()

    async def close(self, code: int = CLOSE_NORMAL) -> None:
        """Stop the worker, close the sink and notify the owner once."""

        self._release()
        if self._sink_closed:
            return
        self._sink_closed = True
        worker = self._worker
        if worker is not None and worker is not asyncio.current_task():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        try:
            await self._sink.close(code=code)
        except Exception as exc:  # the transport may already be gone
            logger.debug("Ignoring close error on %s: %s", self.connection_id, exc)

    def _release(self) -> None:
        """Stop accepting messages and tell the owner, at most once."""

        if self._closed:
            return
        self._closed = True
        if self._on_closed is not None:
            self._on_closed(self)

    async def _drain(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._sink.send_json(message)
            except Exception as exc:
                logger.info(
                    "Stopping delivery to connection %s: %s", self.connection_id, exc
                )
                self._queue.task_done()
                self._release()
                return
            self._queue.task_done()

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            f"DeliveryChannel(connection_id={self.connection_id!r}, "
            f"user_id={self.user_id!r}, pending={self.pending})"
        )


__all__ = [
    "CLOSE_GOING_AWAY",
    "CLOSE_NORMAL",
    "CLOSE_TRY_AGAIN_LATER",
    "DeliveryChannel",
    "MessageSink",
]
