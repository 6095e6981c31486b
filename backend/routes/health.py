"""Health check route."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter

from config import settings

router = APIRouter(tags=["health"])

_started = time.monotonic()


@router.get("/api/health")
async def health() -> dict:
    """Lightweight liveness check, no external calls."""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started, 3),
        "environment": settings.environment,
    }
