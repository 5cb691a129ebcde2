"""In-memory rolling-window limiter for generator calls."""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

from ..errors import RateLimitExceeded
from ..schemas.segments import RateLimitStatus

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60 * 60


class RollingWindowRateLimiter:
    """Allow at most ``limit`` calls per key inside a rolling window.

    A limit of 0 disables generator calls entirely.
    """

    def __init__(
        self,
        limit: int,
        *,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._calls: dict[str, deque[float]] = {}

    @property
    def limit(self) -> int:
        return self._limit

    def _recent(self, key: str) -> deque[float]:
        calls = self._calls.setdefault(key, deque())
        cutoff = self._clock() - self._window
        while calls and calls[0] <= cutoff:
            calls.popleft()
        return calls

    def check(self, key: str) -> bool:
        """Return True when another call is allowed for ``key``."""

        return len(self._recent(key)) < self._limit

    def record(self, key: str) -> None:
        self._recent(key).append(self._clock())

    def acquire(self, key: str) -> None:
        """Record a call, raising ``RateLimitExceeded`` when over budget."""

        if not self.check(key):
            logger.warning("Rate limit reached for %s (%d/hour)", key, self._limit)
            raise RateLimitExceeded(self._limit)
        self.record(key)

    def usage(self, key: str) -> RateLimitStatus:
        used = len(self._recent(key))
        return RateLimitStatus(
            used=used,
            limit=self._limit,
            remaining=max(0, self._limit - used),
        )


__all__ = ["RollingWindowRateLimiter", "WINDOW_SECONDS"]
