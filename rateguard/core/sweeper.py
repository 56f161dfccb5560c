"""Background eviction of idle limiter counters.

Counters are created lazily per client key and would otherwise accumulate
for every address ever seen. The sweeper drops those idle for at least one
window; it goes through the limiter's own lock, so it never interleaves with
an in-flight ``check`` on the same key.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from rateguard.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


def sweep_once(limiters: Iterable[AbstractRateLimiter], now: float | None = None) -> int:
    """Evict idle counters from every limiter.

    Args:
        limiters: Limiters to sweep.
        now: Current UNIX time; defaults to each limiter's clock.

    Returns:
        Total number of evicted keys.
    """

    evicted = sum(limiter.evict_idle(now) for limiter in limiters)
    if evicted:
        logger.info("rate_limit.sweep", extra={"evicted": evicted})
    else:
        logger.debug("rate_limit.sweep", extra={"evicted": 0})
    return evicted


async def sweep_forever(limiters: Iterable[AbstractRateLimiter], interval_seconds: float) -> None:
    """Run ``sweep_once`` every ``interval_seconds`` until cancelled.

    A failing pass is logged and the loop carries on with the next interval.
    """

    limiters = list(limiters)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            sweep_once(limiters)
        except Exception:
            logger.exception("rate_limit.sweep_failed")
