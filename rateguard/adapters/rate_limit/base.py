"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the counter store can be swapped later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

import math
import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass

from rateguard.core.errors import InvalidConfigError


@dataclass(frozen=True)
class LimiterConfig:
    """Immutable limiter configuration.

    Attributes:
        window_seconds: Length of the fixed counting window in seconds.
        max_requests: Admitted requests allowed per key per window.
        message: Text returned to the client on rejection.
    """

    window_seconds: float
    max_requests: int
    message: str


def configure(window_seconds: float, max_requests: int, message: str) -> LimiterConfig:
    """Validate limiter parameters and build a LimiterConfig.

    Args:
        window_seconds: Window length in seconds; must be > 0.
        max_requests: Request cap per window; must be a positive integer.
        message: Rejection message.

    Returns:
        LimiterConfig: Validated configuration.

    Raises:
        InvalidConfigError: If the window is not a positive finite number
            or the cap is not a positive integer.
    """

    if (
        isinstance(window_seconds, bool)
        or not isinstance(window_seconds, numbers.Real)
        or not math.isfinite(window_seconds)
        or window_seconds <= 0
    ):
        raise InvalidConfigError(
            code="invalid_window_duration",
            message="window_seconds must be > 0",
            details={"field": "window_seconds", "actual_value": window_seconds},
        )
    if isinstance(max_requests, bool) or not isinstance(max_requests, numbers.Integral) or max_requests <= 0:
        raise InvalidConfigError(
            code="invalid_max_requests",
            message="max_requests must be a positive integer",
            details={"field": "max_requests", "actual_value": max_requests},
        )

    return LimiterConfig(
        window_seconds=float(window_seconds),
        max_requests=int(max_requests),
        message=message,
    )


@dataclass(frozen=True)
class Decision:
    """Outcome of an admission check.

    Attributes:
        admitted: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Admissions left in the current window (0 when rejected).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait time in seconds when rejected.
        message: Rejection message (None when admitted).
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None = None
    message: str | None = None

    @property
    def rejected(self) -> bool:
        return not self.admitted


@dataclass
class WindowCounter:
    """Per-key bookkeeping for the current window.

    ``count`` only tracks admitted requests; rejections are tallied in
    ``rejected`` and never push ``count`` past the cap.
    """

    window_start: float
    count: int = 0
    rejected: int = 0
    last_seen: float = 0.0


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    config: LimiterConfig

    @abstractmethod
    def check(self, key: str, now: float | None = None) -> Decision:
        """Decide admission for one request from ``key``.

        Args:
            key: Client key (e.g., remote address).
            now: Current time in UNIX seconds; defaults to the limiter clock.

        Returns:
            Decision describing whether the request was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> WindowCounter | None:
        """Return a snapshot of the counter for ``key``, if tracked."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget the counter for ``key``."""
        raise NotImplementedError

    @abstractmethod
    def reset_all(self) -> None:
        """Forget every counter."""
        raise NotImplementedError

    @abstractmethod
    def evict_idle(self, now: float | None = None, idle_seconds: float | None = None) -> int:
        """Drop counters idle for at least ``idle_seconds``.

        Returns:
            Number of evicted keys.
        """
        raise NotImplementedError
