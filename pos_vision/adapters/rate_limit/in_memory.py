"""In-memory sliding-window rate limiter.

Each key keeps a log of the timestamps of its recent requests; a request is
allowed when fewer than ``limit`` requests were recorded during the last
``window_seconds``. Unlike a fixed window, bursts straddling a window
boundary cannot double the effective rate.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a lock guards the per-key logs.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable

from pos_vision.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Sliding-window-log limiter keyed by caller identity."""

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            limit: Maximum number of units per window.
            window_seconds: Length of the sliding window in seconds.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._log_by_key: dict[str, deque[float]] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _prune(self, log: deque[float], now: float) -> None:
        cutoff = now - self._window_seconds
        while log and log[0] <= cutoff:
            log.popleft()

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Record ``cost`` units for ``key`` if the window has room.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            log = self._log_by_key.setdefault(key, deque())
            self._prune(log, now)

            if len(log) + cost <= self._limit:
                log.extend([now] * cost)
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=self._limit - len(log),
                    reset_at=int(math.ceil(log[0] + self._window_seconds)),
                )

            oldest = log[0] if log else now
            reset_at = oldest + self._window_seconds
            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=max(0, self._limit - len(log)),
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
            )

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._log_by_key.clear()
            else:
                self._log_by_key.pop(key, None)
