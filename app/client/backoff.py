"""Capped exponential backoff with full jitter."""

from __future__ import annotations

import random
from typing import Callable


class Backoff:
    """Produce reconnect delays for a bounded number of attempts.

    The n-th delay is drawn uniformly from ``[0, min(cap, base * 2**n)]``.
    ``next_delay`` returns ``None`` once ``max_attempts`` is exhausted.
    """

    def __init__(
        self,
        *,
        base: float,
        cap: float,
        max_attempts: int,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.base = base
        self.cap = cap
        self.max_attempts = max_attempts
        self._rng = rng
        self.attempts = 0

    def reset(self) -> None:
        self.attempts = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def next_delay(self) -> float | None:
        if self.exhausted:
            return None
        ceiling = min(self.cap, self.base * (2**self.attempts))
        self.attempts += 1
        return self._rng(0.0, ceiling)


__all__ = ["Backoff"]
