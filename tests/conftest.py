"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``rateguard`` import so the
module-level settings pick up the testing profile.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_SWEEP_INTERVAL_SECONDS", "0")

import pytest

from rateguard.core.config import (
    AppSettings,
    GeneralLimiterSettings,
    LoginLimiterSettings,
    Settings,
)


class FakeClock:
    """Deterministic clock used to drive window rollover."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def build_settings(
    *,
    scope: str = "off",
    trust_forwarded_for: bool = True,
    include_headers: bool = True,
    general: dict | None = None,
    login: dict | None = None,
) -> Settings:
    """Settings with the sweeper disabled and optional limiter overrides."""

    return Settings(
        app=AppSettings(
            general_limiter_scope=scope,
            trust_forwarded_for=trust_forwarded_for,
            rate_limit_include_headers=include_headers,
            sweep_interval_seconds=0,
        ),
        general_limiter=GeneralLimiterSettings(**(general or {})),
        login_limiter=LoginLimiterSettings(**(login or {})),
    )


@pytest.fixture
def settings_factory():
    return build_settings
