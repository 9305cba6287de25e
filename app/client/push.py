"""Push channel client with explicit lifecycle and bounded reconnects."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Awaitable, Callable, Protocol

from pydantic import ValidationError
from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus

from app.domain.exceptions import AuthError
from app.interfaces.api.schemas import NotificationRead

from .backoff import Backoff
from .config import ClientSettings
from .subscriptions import Listener, ListenerRegistry, Subscription

logger = logging.getLogger(__name__)

NEW_NOTIFICATION_EVENT = "new_notification"
_POLICY_VIOLATION = 1008


class PushLifecycle(str, Enum):
    """Transport events reported to lifecycle listeners."""

    CONNECTING = "connecting"
    OPEN = "open"
    LOST = "lost"


class PushConnection(Protocol):
    """Subset of a websockets client connection used here."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


Connector = Callable[[str, dict[str, str]], Awaitable[PushConnection]]


async def websocket_connector(url: str, headers: dict[str, str]) -> PushConnection:
    """Open a websocket, mapping a rejected handshake to :class:`AuthError`."""

    try:
        return await websockets_connect(url, additional_headers=headers)
    except InvalidStatus as exc:
        if exc.response.status_code in (401, 403):
            raise AuthError(f"Push handshake rejected ({exc.response.status_code})") from exc
        raise


class NotificationPushClient:
    """Authenticated push connection that reconnects with capped backoff.

    Nothing happens until :meth:`open`; :meth:`close` stops the reconnect loop
    and drops the connection. Listeners are attached with :meth:`subscribe`
    and :meth:`subscribe_lifecycle`, both returning a :class:`Subscription`.
    A lifecycle listener that raises on ``OPEN`` makes the connection count as
    failed, so it is dropped and retried.
    """

    def __init__(
        self,
        token: str,
        *,
        settings: ClientSettings | None = None,
        connector: Connector | None = None,
        backoff: Backoff | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._token = token
        self._connector = connector or websocket_connector
        self._backoff = backoff or Backoff(
            base=self.settings.reconnect_base_delay_seconds,
            cap=self.settings.reconnect_max_delay_seconds,
            max_attempts=self.settings.reconnect_max_attempts,
        )
        self._sleep = sleep
        self._notifications: ListenerRegistry[NotificationRead] = ListenerRegistry(
            "new_notification"
        )
        self._lifecycle: ListenerRegistry[PushLifecycle] = ListenerRegistry("lifecycle")
        self._task: asyncio.Task[None] | None = None
        self.last_error: BaseException | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Listener[NotificationRead]) -> Subscription:
        return self._notifications.subscribe(listener)

    def subscribe_lifecycle(self, listener: Listener[PushLifecycle]) -> Subscription:
        return self._lifecycle.subscribe(listener)

    async def open(self) -> None:
        """Start the connect/reconnect loop in the background."""

        if self.running:
            return
        self.last_error = None
        self._backoff.reset()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="notification-push-client"
        )

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait_closed(self) -> None:
        """Wait until the loop stops on its own (credential rejected or retries spent)."""

        if self._task is not None:
            await asyncio.shield(self._task)

    async def _run(self) -> None:
        url = self.settings.push_url()
        headers = {"Authorization": f"Bearer {self._token}"}
        while True:
            await self._lifecycle.emit(PushLifecycle.CONNECTING)
            try:
                connection = await self._connector(url, headers)
            except AuthError as exc:
                await self._give_up(exc)
                return
            except (OSError, asyncio.TimeoutError, InvalidHandshake) as exc:
                logger.warning("Push connection to %s failed: %s", url, exc)
                self.last_error = exc
            else:
                try:
                    await self._serve(connection)
                except AuthError as exc:
                    await self._give_up(exc)
                    return
                except (ConnectionClosed, OSError) as exc:
                    logger.info("Push connection lost: %s", exc)
                    self.last_error = exc
                except Exception as exc:
                    logger.warning("Push connection dropped after error: %s", exc)
                    self.last_error = exc
                finally:
                    await self._close_quietly(connection)

            await self._lifecycle.emit(PushLifecycle.LOST)
            delay = self._backoff.next_delay()
            if delay is None:
                logger.error(
                    "Giving up on push channel after %d attempts", self._backoff.attempts
                )
                return
            logger.info(
                "Reconnecting push channel in %.2fs (attempt %d/%d)",
                delay,
                self._backoff.attempts,
                self._backoff.max_attempts,
            )
            await self._sleep(delay)

    async def _serve(self, connection: PushConnection) -> None:
        await self._lifecycle.emit(PushLifecycle.OPEN, propagate=True)
        self._backoff.reset()
        heartbeat = asyncio.get_running_loop().create_task(self._heartbeat(connection))
        try:
            while True:
                try:
                    raw = await connection.recv()
                except ConnectionClosed as exc:
                    if exc.rcvd is not None and exc.rcvd.code == _POLICY_VIOLATION:
                        raise AuthError("Push channel closed: credential rejected") from exc
                    raise
                await self._dispatch(raw)
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)

    async def _heartbeat(self, connection: PushConnection) -> None:
        while True:
            await asyncio.sleep(self.settings.heartbeat_interval_seconds)
            await connection.send(json.dumps({"type": "ping"}))

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON push frame")
            return
        if not isinstance(message, dict) or message.get("type") != NEW_NOTIFICATION_EVENT:
            return
        try:
            notification = NotificationRead.model_validate(message.get("data"))
        except ValidationError as exc:
            logger.warning("Ignoring malformed %s event: %s", NEW_NOTIFICATION_EVENT, exc)
            return
        await self._notifications.emit(notification)

    async def _give_up(self, exc: AuthError) -> None:
        logger.error("Push channel stopped: %s", exc)
        self.last_error = exc
        await self._lifecycle.emit(PushLifecycle.LOST)

    @staticmethod
    async def _close_quietly(connection: PushConnection) -> None:
        try:
            await connection.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing push connection: %s", exc)


__all__ = [
    "Connector",
    "NEW_NOTIFICATION_EVENT",
    "NotificationPushClient",
    "PushConnection",
    "PushLifecycle",
    "websocket_connector",
]
