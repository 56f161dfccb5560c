from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness endpoint, never rate limited.

    Also reports how many client keys each guard currently tracks, which
    shows whether the idle sweeper keeps the counter stores bounded.
    """

    registry = request.app.state.rate_limit_guards
    return {
        "status": "ok",
        "tracked_keys": {guard.name: len(guard.limiter) for guard in registry},
    }
