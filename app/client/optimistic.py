"""Reusable apply-locally, call-remote, confirm-or-revert helper."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from app.domain.exceptions import NotFoundError

from .state import NotificationCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PendingMutation:
    """A local change waiting for the server to confirm it."""

    token: int
    label: str
    apply: Callable[[NotificationCache], object]


class OptimisticMutations:
    """Track in-flight optimistic mutations.

    The visible state is always ``baseline + pending``: callers rebuild it in
    ``on_change`` by copying their confirmed baseline and calling
    :meth:`apply_pending`. Reverting a failed mutation therefore only means
    forgetting it, and a baseline replaced by a resync automatically gets the
    still-pending changes applied on top.
    """

    def __init__(
        self,
        *,
        on_change: Callable[[], None],
        on_confirm: Callable[[PendingMutation], None],
    ) -> None:
        self._on_change = on_change
        self._on_confirm = on_confirm
        self._pending: dict[int, PendingMutation] = {}
        self._tokens = itertools.count(1)

    @property
    def pending(self) -> list[PendingMutation]:
        return list(self._pending.values())

    def __len__(self) -> int:
        return len(self._pending)

    def apply_pending(self, cache: NotificationCache) -> None:
        for mutation in self._pending.values():
            mutation.apply(cache)

    async def run(
        self,
        label: str,
        apply: Callable[[NotificationCache], object],
        remote: Callable[[], Awaitable[T]],
    ) -> T | None:
        """Apply ``apply`` locally, await ``remote`` and confirm or revert.

        A :class:`NotFoundError` from ``remote`` counts as confirmation: the
        server is already in the state the mutation was heading to. Any other
        exception (including cancellation) reverts the local change before it
        propagates.
        """

        mutation = PendingMutation(token=next(self._tokens), label=label, apply=apply)
        self._pending[mutation.token] = mutation
        self._on_change()

        confirmed = False
        result: T | None = None
        try:
            try:
                result = await remote()
            except NotFoundError:
                logger.info("%s: already gone on the server, keeping local change", label)
            confirmed = True
        except Exception as exc:
            logger.warning("%s failed, rolling back local change: %s", label, exc)
            raise
        finally:
            del self._pending[mutation.token]
            if confirmed:
                self._on_confirm(mutation)
            self._on_change()
        return result


__all__ = ["OptimisticMutations", "PendingMutation"]
