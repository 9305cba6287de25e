"""Listener registries that hand out unsubscribe handles."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Listener = Callable[[E], "Awaitable[None] | None"]


class Subscription:
    """Handle returned by :meth:`ListenerRegistry.subscribe`."""

    def __init__(self, registry: "ListenerRegistry[Any]", listener: Listener[Any]) -> None:
        self._registry = registry
        self.listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Detach the listener; calling it again does nothing."""

        if self._active:
            self._registry._discard(self)
            self._active = False


class ListenerRegistry(Generic[E]):
    """Ordered set of listeners.

    Subscribing a callable that is already registered returns its existing
    handle, so one registration always has exactly one handle.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, listener: Listener[E]) -> Subscription:
        for subscription in self._subscriptions:
            if subscription.listener == listener:
                return subscription
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    async def emit(self, event: E, *, propagate: bool = False) -> None:
        """Call every listener with ``event``.

        With ``propagate`` the first listener error is raised; otherwise it is
        logged so one faulty listener cannot starve the others.
        """

        for listener in self._listeners():
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                if propagate:
                    raise
                logger.exception("%s listener %r failed", self.name, listener)

    def emit_nowait(self, event: E) -> None:
        """Call every listener synchronously; awaitable results run as tracked tasks."""

        for listener in self._listeners():
            try:
                result = listener(event)
            except Exception:
                logger.exception("%s listener %r failed", self.name, listener)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def _listeners(self) -> list[Listener[E]]:
        return [subscription.listener for subscription in self._subscriptions]

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "%s listener task failed: %s", self.name, exc, exc_info=exc
            )

    def _discard(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


__all__ = ["Listener", "ListenerRegistry", "Subscription"]
