"""Rate limiting guards and the FastAPI dependency that enforces them.

This module wires the limiter adapters into the HTTP layer.

Design goals:
- Explicit composition: a guard is an object with ``evaluate(request)``;
  several guards combine into a ``GuardChain`` instead of hidden hooks.
- No module-level limiter: the registry is built from a Settings object
  by the app factory and stored on ``app.state``.
- Fail closed: a request without a usable client key is rejected with 400.

Limiting strategy:
- Fixed window per client address, one independent counter store per guard.
- ``login`` guards the login route; ``general`` can be applied app-wide.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Protocol

from fastapi import Request

from rateguard.adapters.rate_limit.base import AbstractRateLimiter, Decision, configure
from rateguard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from rateguard.core.config import LimiterSettings, Settings
from rateguard.core.errors import InvalidKeyError, RateLimitedError
from rateguard.core.logging import hash_client_key

logger = logging.getLogger(__name__)

GENERAL = "general"
LOGIN = "login"

KeyFunc = Callable[[Request], str]
Clock = Callable[[], float]


class Guard(Protocol):
    def evaluate(self, request: Request) -> Decision: ...


def client_key_from_request(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Derive the limiter key for the current request.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Prefer the first ``X-Forwarded-For`` hop
            (only safe behind a proxy that sets it).

    Returns:
        str: Client address.

    Raises:
        InvalidKeyError: If no client address is available.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host

    raise InvalidKeyError(
        code="client_key_missing",
        message="Unable to determine client address for rate limiting",
    )


@dataclass(frozen=True)
class RateLimitGuard:
    """A limiter bound to a way of deriving client keys."""

    name: str
    limiter: AbstractRateLimiter
    key_func: KeyFunc = client_key_from_request

    def evaluate(self, request: Request) -> Decision:
        key = self.key_func(request)
        decision = self.limiter.check(key)

        log_extra = {
            "guard": self.name,
            "key_hash": hash_client_key(key),
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_s": self.limiter.config.window_seconds,
        }
        if decision.admitted:
            logger.info("rate_limit.allowed", extra=log_extra)
        else:
            logger.warning(
                "rate_limit.exceeded",
                extra={**log_extra, "retry_after_s": decision.retry_after_seconds},
            )
        return decision


class GuardChain:
    """Admit only if every guard admits; stop at the first rejection.

    Guards after a rejecting one are not evaluated and therefore do not
    consume budget. An empty chain admits everything.
    """

    def __init__(self, guards: Iterable[Guard]) -> None:
        self.guards: tuple[Guard, ...] = tuple(guards)

    def evaluate(self, request: Request) -> Decision:
        last: Decision | None = None
        for guard in self.guards:
            last = guard.evaluate(request)
            if last.rejected:
                return last
        if last is None:
            return Decision(admitted=True, limit=0, remaining=0, reset_at=0)
        return last


class GuardRegistry:
    """Named guards built for one application instance."""

    def __init__(self, guards: Iterable[RateLimitGuard] = ()) -> None:
        self._guards: dict[str, RateLimitGuard] = {}
        for guard in guards:
            self.add(guard)

    def add(self, guard: RateLimitGuard) -> None:
        if guard.name in self._guards:
            raise ValueError(f"guard {guard.name!r} already registered")
        self._guards[guard.name] = guard

    def __getitem__(self, name: str) -> RateLimitGuard:
        return self._guards[name]

    def __contains__(self, name: object) -> bool:
        return name in self._guards

    def __iter__(self):
        return iter(self._guards.values())

    @property
    def limiters(self) -> list[AbstractRateLimiter]:
        return [guard.limiter for guard in self._guards.values()]

    def chain(self, *names: str) -> GuardChain:
        return GuardChain(self._guards[name] for name in names)


def _build_guard(
    name: str,
    limiter_settings: LimiterSettings,
    key_func: KeyFunc,
    clock: Clock | None,
) -> RateLimitGuard:
    config = configure(
        window_seconds=limiter_settings.window_seconds,
        max_requests=limiter_settings.max_requests,
        message=limiter_settings.message,
    )
    limiter = (
        InMemoryFixedWindowRateLimiter(config, clock=clock)
        if clock is not None
        else InMemoryFixedWindowRateLimiter(config)
    )
    logger.info(
        "rate_limit.configured",
        extra={
            "guard": name,
            "limit": config.max_requests,
            "window_s": config.window_seconds,
        },
    )
    return RateLimitGuard(name=name, limiter=limiter, key_func=key_func)


def build_guards(settings: Settings, *, clock: Clock | None = None) -> GuardRegistry:
    """Build the general and login guards from settings.

    Args:
        settings: Application settings.
        clock: Optional time source shared by all limiters (tests).

    Returns:
        GuardRegistry with ``general`` and ``login`` guards.

    Raises:
        InvalidConfigError: If any limiter has a non-positive window or cap.
    """

    key_func = functools.partial(
        client_key_from_request,
        trust_forwarded_for=settings.app.trust_forwarded_for,
    )
    return GuardRegistry(
        [
            _build_guard(GENERAL, settings.general_limiter, key_func, clock),
            _build_guard(LOGIN, settings.login_limiter, key_func, clock),
        ]
    )


def _rate_limit_headers(decision: Decision) -> dict[str, str]:
    return {
        "Retry-After": str(decision.retry_after_seconds or 0),
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }


def rate_limited(*names: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the named guards in order.

    Usage:
        @router.get("/login", dependencies=[Depends(rate_limited("login"))])

    Args:
        names: Guard names registered on ``app.state.rate_limit_guards``.

    Returns:
        Async dependency raising RateLimitedError (HTTP 429) on rejection.
    """

    async def enforce_rate_limit(request: Request) -> None:
        registry: GuardRegistry = request.app.state.rate_limit_guards
        decision = registry.chain(*names).evaluate(request)
        if decision.admitted:
            return

        include_headers = request.app.state.settings.app.rate_limit_include_headers
        raise RateLimitedError(
            code="rate_limited",
            message=decision.message or "Too many requests",
            details={
                "limit": decision.limit,
                "retry_after": decision.retry_after_seconds or 0,
            },
            headers=_rate_limit_headers(decision) if include_headers else {},
        )

    return enforce_rate_limit
