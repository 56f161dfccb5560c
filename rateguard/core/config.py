"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log lines are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size; 0 disables rotation",
        ge=0,
    )
    backup_count: int = Field(
        3,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class LimiterSettings(BaseSettings):
    """Fixed-window limiter parameters.

    Values are validated by ``configure()`` when the app is built, so bad
    numbers surface as ``InvalidConfigError`` rather than a settings error.
    """

    window_seconds: float = Field(
        15 * 60,
        description="Fixed window length in seconds",
    )
    max_requests: int = Field(
        5,
        description="Maximum admitted requests per client key per window",
    )
    message: str = Field(
        "Too many requests, please try again later.",
        description="Message returned to clients when a request is rejected",
    )


class GeneralLimiterSettings(LimiterSettings):
    """General-purpose limiter, applied app-wide when enabled."""

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LoginLimiterSettings(LimiterSettings):
    """Login route limiter with its own counters and message."""

    message: str = Field(
        "Too many login requests",
        description="Message returned when the login limiter rejects a request",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOGIN_RATE_LIMIT_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    general_limiter_scope: Literal["off", "global"] = Field(
        "off",
        description="Apply the general limiter to every route (global) or not at all (off)",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For entry as the client key (behind a proxy)",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    sweep_interval_seconds: float = Field(
        60.0,
        description="Interval between idle counter sweeps; <= 0 disables the sweeper",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class ServerSettings(BaseSettings):
    """Uvicorn bind address."""

    host: str = Field(
        "0.0.0.0",
        description="Interface to bind",
    )
    port: int = Field(
        3004,
        description="TCP port to listen on",
        ge=1,
        le=65535,
    )

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Nested groups are created via default_factory so each reads its own
    environment prefix.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    general_limiter: GeneralLimiterSettings = Field(default_factory=GeneralLimiterSettings)
    login_limiter: LoginLimiterSettings = Field(default_factory=LoginLimiterSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
