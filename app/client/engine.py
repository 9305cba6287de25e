"""Client-side reconciliation of fetched, pushed and optimistic state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union
from uuid import UUID

from app.interfaces.api.schemas import (
    NotificationOperationStatus,
    NotificationRead,
)

from .api import NotificationApiClient
from .optimistic import OptimisticMutations, PendingMutation
from .push import NotificationPushClient, PushLifecycle
from .state import ConnectionState, NotificationCache
from .subscriptions import Listener, ListenerRegistry, Subscription

logger = logging.getLogger(__name__)

# Entries replayed on top of a resync baseline, in arrival order.
_JournalEntry = Union[NotificationRead, PendingMutation]


@dataclass(frozen=True)
class NotificationSnapshot:
    """Immutable view handed to state listeners."""

    items: tuple[NotificationRead, ...]
    unread_count: int
    connection_state: ConnectionState
    pending_mutations: int


class NotificationReconciliationEngine:
    """Keep a notification list and unread counter consistent on the client.

    State is kept as a server-confirmed *baseline* plus the optimistic
    mutations still in flight; the visible list is rebuilt from both after
    every change. All methods must run on one event loop.

    A resync replaces the baseline with a fresh fetch. Push events and
    mutations confirmed while that fetch was in flight are replayed on the new
    baseline, and still-pending mutations are re-applied on top, so neither a
    pushed notification nor an in-flight "mark read" is lost.
    """

    def __init__(
        self,
        api: NotificationApiClient,
        push: NotificationPushClient | None = None,
    ) -> None:
        self._api = api
        self._push = push
        self._baseline = NotificationCache()
        self._view = NotificationCache()
        self._state = ConnectionState.DISCONNECTED
        self._mutations = OptimisticMutations(
            on_change=self._refresh, on_confirm=self._confirm
        )
        self._listeners: ListenerRegistry[NotificationSnapshot] = ListenerRegistry("state")
        self._fetch_generation = 0
        self._fetches_in_flight = 0
        self._journal: list[_JournalEntry] = []
        self._subscriptions: list[Subscription] = []

    # -- read side -----------------------------------------------------

    @property
    def items(self) -> list[NotificationRead]:
        return self._view.items

    @property
    def unread_count(self) -> int:
        return self._view.unread_count

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def pending_mutations(self) -> int:
        return len(self._mutations)

    def snapshot(self) -> NotificationSnapshot:
        return NotificationSnapshot(
            items=tuple(self._view.items),
            unread_count=self._view.unread_count,
            connection_state=self._state,
            pending_mutations=len(self._mutations),
        )

    def subscribe(self, listener: Listener[NotificationSnapshot]) -> Subscription:
        """Be told about every state change; returns an unsubscribe handle."""

        return self._listeners.subscribe(listener)

    # -- lifecycle -----------------------------------------------------

    async def start(self) -> None:
        """Load the baseline and, when a push client is attached, open it."""

        await self.initialize()
        if self._push is None:
            return
        self._subscriptions = [
            self._push.subscribe(self.on_push),
            self._push.subscribe_lifecycle(self._on_push_lifecycle),
        ]
        await self._push.open()

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        if self._push is not None:
            await self._push.close()
        self._set_state(ConnectionState.DISCONNECTED)

    async def initialize(self) -> None:
        """Replace the list with a fresh fetch and head towards ``Connecting``."""

        await self._resync()
        if self._state is ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.CONNECTING)

    def on_connecting(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.CONNECTING)

    def on_disconnect(self) -> None:
        if self._state is not ConnectionState.DISCONNECTED:
            logger.info("Push channel disconnected; push updates frozen until resync")
        self._set_state(ConnectionState.DISCONNECTED)

    async def on_reconnect(self) -> None:
        """Resync after a successful handshake, then report ``Connected``.

        A failed fetch moves back to ``Disconnected`` and re-raises so the push
        client retries.
        """

        self._set_state(ConnectionState.RESYNCING)
        try:
            await self._resync()
        except Exception:
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        self._set_state(ConnectionState.CONNECTED)

    def on_push(self, notification: NotificationRead) -> bool:
        """Merge a pushed notification; duplicates by id are ignored.

        Returns ``True`` when the notification was added.
        """

        if self._state is ConnectionState.DISCONNECTED:
            logger.debug("Ignoring push for %s while disconnected", notification.id)
            return False
        if self._fetches_in_flight:
            self._journal.append(notification)
        if not self._baseline.insert(notification):
            logger.debug("Ignoring duplicate push for %s", notification.id)
            return False
        self._refresh()
        return True

    # -- optimistic mutations ------------------------------------------

    async def mark_read(self, notification_id: UUID) -> NotificationRead | None:
        """Mark one notification read, optimistically.

        Unknown or already read ids are a no-op and return ``None``.
        """

        current = self._view.get(notification_id)
        if current is None or current.is_read:
            return None
        return await self._mutations.run(
            f"mark_read {notification_id}",
            lambda cache: cache.mark_read(notification_id),
            lambda: self._api.mark_read(notification_id),
        )

    async def mark_all_read(self) -> NotificationOperationStatus | None:
        """Mark every item currently shown as read.

        Only the ids unread at call time are touched locally; items pushed
        while the request is in flight keep their own state.
        """

        unread_ids = frozenset(item.id for item in self._view if not item.is_read)
        return await self._mutations.run(
            "mark_all_read",
            lambda cache: cache.mark_many_read(unread_ids),
            self._api.mark_all_read,
        )

    async def delete(self, notification_id: UUID) -> NotificationOperationStatus | None:
        """Delete one notification, optimistically; unknown ids are a no-op."""

        if notification_id not in self._view:
            return None
        return await self._mutations.run(
            f"delete {notification_id}",
            lambda cache: cache.remove(notification_id),
            lambda: self._api.delete(notification_id),
        )

    # -- internals -----------------------------------------------------

    async def _resync(self) -> None:
        self._fetch_generation += 1
        generation = self._fetch_generation
        if not self._fetches_in_flight:
            self._journal = []
        self._fetches_in_flight += 1
        try:
            fetched = await self._api.list_notifications()
        finally:
            self._fetches_in_flight -= 1

        if generation != self._fetch_generation:
            logger.debug("Discarding superseded resync %d", generation)
            return

        baseline = NotificationCache(fetched)
        for entry in self._journal:
            if isinstance(entry, PendingMutation):
                entry.apply(baseline)
            else:
                baseline.insert(entry)
        self._journal = []
        self._baseline = baseline
        logger.info(
            "Resynced %d notifications (%d pending mutation(s) re-applied)",
            len(baseline),
            len(self._mutations),
        )
        self._refresh()

    def _confirm(self, mutation: PendingMutation) -> None:
        mutation.apply(self._baseline)
        if self._fetches_in_flight:
            self._journal.append(mutation)

    def _refresh(self) -> None:
        view = self._baseline.copy()
        self._mutations.apply_pending(view)
        self._view = view
        self._notify()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug("Connection state %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if len(self._listeners):
            self._listeners.emit_nowait(self.snapshot())

    async def _on_push_lifecycle(self, event: PushLifecycle) -> None:
        if event is PushLifecycle.CONNECTING:
            self.on_connecting()
        elif event is PushLifecycle.OPEN:
            await self.on_reconnect()
        else:
            self.on_disconnect()


__all__ = ["NotificationReconciliationEngine", "NotificationSnapshot"]
