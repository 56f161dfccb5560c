"""Application-level exception types.

This module defines domain errors used across the limiter, guards and HTTP
layer, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what it knows.
    """

    field: str
    actual_value: Any
    limit: int
    retry_after: int


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input validation fails."""


class InvalidConfigError(AppError):
    """Raised when a limiter is configured with a non-positive window or cap.

    Fatal at startup: the app factory lets it propagate so the server never
    serves traffic with that limiter.
    """


class InvalidKeyError(ValidationAppError):
    """Raised when no usable client key can be derived for a request."""


@dataclass
class RateLimitedError(AppError):
    """Raised by the HTTP layer when a guard rejects a request.

    Attributes:
        headers: Extra response headers (Retry-After, X-RateLimit-*).
    """

    headers: dict[str, str] = field(default_factory=dict)
