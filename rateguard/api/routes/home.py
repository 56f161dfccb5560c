from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Home"])


@router.get("/")
def home() -> str:
    """Greeting endpoint. Unguarded unless the general limiter is global."""

    return "Hello World"
