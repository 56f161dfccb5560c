"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory limiter and later migrate to Redis or another shared store
without changing the HTTP layer.
"""

from rateguard.adapters.rate_limit.base import (
    AbstractRateLimiter,
    Decision,
    LimiterConfig,
    WindowCounter,
    configure,
)
from rateguard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "Decision",
    "InMemoryFixedWindowRateLimiter",
    "LimiterConfig",
    "WindowCounter",
    "configure",
]
