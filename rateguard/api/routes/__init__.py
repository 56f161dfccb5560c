from __future__ import annotations

from rateguard.api.routes.health import router as health_router
from rateguard.api.routes.home import router as home_router
from rateguard.api.routes.login import router as login_router

__all__ = ["health_router", "home_router", "login_router"]
