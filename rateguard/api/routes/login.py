from __future__ import annotations

from fastapi import APIRouter, Depends

from rateguard.core.rate_limit import LOGIN, rate_limited
from rateguard.schemas.errors import RATE_LIMITED_RESPONSE

router = APIRouter(tags=["Auth"])


@router.get(
    "/login",
    dependencies=[Depends(rate_limited(LOGIN))],
    responses=RATE_LIMITED_RESPONSE,
)
def login() -> str:
    """Placeholder login form behind its own rate limiter.

    The login guard keeps separate counters from the general limiter, so
    exhausting one never affects the other.

    Returns:
        str: Static placeholder text.
    """

    return "Imaginary login form"
