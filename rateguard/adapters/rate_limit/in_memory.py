"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock covers lookup, rollover, check and increment.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import replace
from typing import Callable

from rateguard.adapters.rate_limit.base import (
    AbstractRateLimiter,
    Decision,
    LimiterConfig,
    WindowCounter,
)
from rateguard.core.errors import InvalidKeyError


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    Each key's window starts at its first request and rolls over once
    ``window_seconds`` have elapsed. Requests in the expired window are
    discarded entirely, so a client may burst up to ``2 * max_requests``
    across a boundary.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        config: LimiterConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            config: Validated limiter configuration (see ``configure``).
            clock: Time source function returning UNIX time in seconds.
        """
        self.config = config
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, WindowCounter] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def _get_or_roll_counter(self, key: str, now: float) -> WindowCounter:
        """Get the counter for key, creating or resetting it as needed.

        A clock that moved backwards keeps the current window.
        """
        counter = self._counters.get(key)
        if counter is None:
            counter = WindowCounter(window_start=now, last_seen=now)
            self._counters[key] = counter
        elif now - counter.window_start >= self.config.window_seconds:
            counter.window_start = now
            counter.count = 0
            counter.rejected = 0
        return counter

    def _reset_at(self, counter: WindowCounter) -> float:
        return counter.window_start + self.config.window_seconds

    def _build_admitted(self, counter: WindowCounter) -> Decision:
        return Decision(
            admitted=True,
            limit=self.config.max_requests,
            remaining=max(0, self.config.max_requests - counter.count),
            reset_at=int(math.ceil(self._reset_at(counter))),
        )

    def _build_rejected(self, counter: WindowCounter, now: float) -> Decision:
        reset_at = self._reset_at(counter)
        return Decision(
            admitted=False,
            limit=self.config.max_requests,
            remaining=0,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            message=self.config.message,
        )

    def check(self, key: str, now: float | None = None) -> Decision:
        """Decide admission for the provided key.

        This method both checks the current window usage and mutates the state.

        Args:
            key: Unique identifier for rate limiting (e.g., client address).
            now: Current UNIX time; defaults to the injected clock.

        Returns:
            Decision with the admission outcome and window metadata.

        Raises:
            InvalidKeyError: If key is empty or not a string.
        """
        if not isinstance(key, str) or not key:
            raise InvalidKeyError(
                code="invalid_client_key",
                message="Client key must be a non-empty string",
            )

        if now is None:
            now = self._clock()

        with self._lock:
            counter = self._get_or_roll_counter(key, now)
            counter.last_seen = max(counter.last_seen, now)

            if counter.count < self.config.max_requests:
                counter.count += 1
                return self._build_admitted(counter)

            counter.rejected += 1
            return self._build_rejected(counter, now)

    def get(self, key: str) -> WindowCounter | None:
        with self._lock:
            counter = self._counters.get(key)
            return replace(counter) if counter is not None else None

    def reset(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)

    def reset_all(self) -> None:
        with self._lock:
            self._counters.clear()

    def evict_idle(self, now: float | None = None, idle_seconds: float | None = None) -> int:
        """Remove counters with no activity for at least ``idle_seconds``.

        ``idle_seconds`` never goes below the window length: a counter idle
        that long has an expired window anyway, so dropping it cannot grant
        extra capacity.

        Args:
            now: Current UNIX time; defaults to the injected clock.
            idle_seconds: Idle threshold; defaults to the window length.

        Returns:
            Number of evicted keys.
        """
        if now is None:
            now = self._clock()
        threshold = max(idle_seconds or 0.0, self.config.window_seconds)

        with self._lock:
            stale = [
                key
                for key, counter in self._counters.items()
                if now - counter.last_seen >= threshold
            ]
            for key in stale:
                del self._counters[key]
            return len(stale)
