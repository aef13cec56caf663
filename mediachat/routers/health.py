"""
Health check endpoints.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.config import Settings, get_settings
from ..core.database import Database

logger = structlog.get_logger(__name__)
router = APIRouter()

_STARTED_AT = time.time()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime
    version: str
    uptime_seconds: float
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Health check endpoint.

    Checks:
    - Database connectivity
    - Provider credentials configured
    """
    db_start = time.time()
    connected = await Database.ping()
    checks: Dict[str, Any] = {
        "database": {
            "status": "healthy" if connected else "unhealthy",
            "connected": connected,
            "latency_ms": round((time.time() - db_start) * 1000, 2),
        },
        "providers": {
            "openrouter": bool(settings.openrouter_api_key),
            "runware": bool(settings.runware_api_key),
            "memories": bool(settings.memories_api_key),
        },
    }

    overall = "healthy" if connected else "degraded"
    if not connected:
        logger.warning("Health check degraded", database_connected=False)

    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        uptime_seconds=round(time.time() - _STARTED_AT, 2),
        checks=checks,
    )
