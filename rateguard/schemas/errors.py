"""Pydantic schemas for error responses (used for OpenAPI docs)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """Error payload shared by every non-2xx response."""

    code: str = Field(..., description="Stable, machine-readable error code.")
    message: str = Field(..., description="Human-readable message (the limiter message on 429).")
    request_id: str | None = Field(
        default=None,
        description="Correlation id, also returned in the X-Request-ID header.",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured context (limit, retry_after, ...).",
    )


class ErrorResponse(BaseModel):
    """Envelope: ``{"error": {...}}``."""

    error: ErrorBody


RATE_LIMITED_RESPONSE: dict[int | str, dict[str, Any]] = {
    429: {
        "model": ErrorResponse,
        "description": "Too many requests from this client in the current window.",
    }
}
