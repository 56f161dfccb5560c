"""Application factory for the FastAPI app.

Centralizes app construction (settings, limiters, middleware, handlers,
routers) so tests can build isolated apps from their own Settings.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Callable

from fastapi import Depends, FastAPI

from rateguard.api.routes import health_router, home_router, login_router
from rateguard.core.config import Settings, settings as default_settings
from rateguard.core.exception_handlers import setup_exception_handlers
from rateguard.core.logging import configure_logging
from rateguard.core.middleware import request_id_middleware
from rateguard.core.rate_limit import GENERAL, build_guards, rate_limited
from rateguard.core.sweeper import sweep_forever

logger = logging.getLogger(__name__)


def _build_lifespan(interval_seconds: float):
    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if interval_seconds <= 0:
            yield
            return

        task = asyncio.create_task(
            sweep_forever(app.state.rate_limit_guards.limiters, interval_seconds)
        )
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    return lifespan


def create_app(
    app_settings: Settings | None = None,
    *,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the environment.
        clock: Optional time source for every limiter (tests).

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        InvalidConfigError: If a limiter is misconfigured. The app is never
            returned in that case, so nothing serves traffic with it.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    guards = build_guards(cfg, clock=clock)

    app = FastAPI(
        title="Rateguard",
        description=(
            "Demo service with fixed-window rate limiting per client address. "
            "The login route has its own limiter; a general limiter can be "
            "applied to every route via APP_GENERAL_LIMITER_SCOPE=global."
        ),
        version="0.1.0",
        lifespan=_build_lifespan(cfg.app.sweep_interval_seconds),
    )
    app.state.settings = cfg
    app.state.rate_limit_guards = guards

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers; health stays outside the general limiter
    scoped = [Depends(rate_limited(GENERAL))] if cfg.app.general_limiter_scope == "global" else []
    app.include_router(home_router, dependencies=scoped)
    app.include_router(login_router, dependencies=scoped)
    app.include_router(health_router)

    logger.info(
        "app.created",
        extra={
            "app_env": cfg.app_env,
            "general_limiter_scope": cfg.app.general_limiter_scope,
            "sweep_interval_s": cfg.app.sweep_interval_seconds,
        },
    )
    return app
