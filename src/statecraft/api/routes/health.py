from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.get("/status", response_class=PlainTextResponse, status_code=status.HTTP_200_OK)
async def status_check() -> str:
    """Unauthenticated liveness check."""
    return "OK"
