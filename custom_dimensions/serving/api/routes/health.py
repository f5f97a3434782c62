"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter, Response
from pydantic import BaseModel
from redis.exceptions import RedisError

from custom_dimensions.config import get_settings
from custom_dimensions.database.connection import check_database_health
from custom_dimensions.serving.cache import get_redis

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Checks the configuration database and the tracker cache.
    
    A missing cache only degrades the service: writes still succeed and
    ingestion falls back to the database.
    """
    settings = get_settings()
    checks = {}
    overall_status = "healthy"
    
    db_health = await check_database_health()
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"
    
    try:
        await get_redis().ping()
        checks["redis"] = {"status": "healthy"}
    except (RedisError, RuntimeError, OSError) as e:
        checks["redis"] = {"status": "unhealthy", "error": str(e)}
        if overall_status == "healthy":
            overall_status = "degraded"
    
    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Returns 200 once the configuration database answers."""
    db_health = await check_database_health()
    
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    
    return {"status": "ready"}
