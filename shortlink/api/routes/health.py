"""Health check endpoints for monitoring application status."""

import time

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from shortlink.core.config import settings
from shortlink.core.redis import redis_manager
from shortlink.db.base import DatabaseHealthCheck
from shortlink.scheduler.scheduler import scheduler_service

router = APIRouter(tags=["health"])


async def _redis_status() -> dict:
    start_time = time.perf_counter()
    if await redis_manager.ping():
        return {"status": "healthy", "latency_ms": round((time.perf_counter() - start_time) * 1000, 2)}
    return {"status": "unhealthy", "error": "Redis ping failed"}


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Get system health status",
    response_description="Health status of all system components"
)
async def health_check():
    """Database is required; Redis only degrades the service since the cache is optional."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "timestamp": time.time(),
        "components": {},
    }

    database = await DatabaseHealthCheck.check_connection()
    health_status["components"]["database"] = database
    if database["status"] != "healthy":
        health_status["status"] = "unhealthy"

    if redis_manager.is_enabled:
        redis_status = await _redis_status()
        health_status["components"]["redis"] = redis_status
        if redis_status["status"] != "healthy" and health_status["status"] == "healthy":
            health_status["status"] = "degraded"

    if settings.SCHEDULER_ENABLED:
        health_status["components"]["scheduler"] = {"running": scheduler_service.is_running}

    code = status.HTTP_503_SERVICE_UNAVAILABLE if health_status["status"] == "unhealthy" else status.HTTP_200_OK
    return JSONResponse(status_code=code, content=health_status)


@router.get(
    "/health/ready",
    summary="Readiness probe",
    response_description="Application readiness status"
)
async def readiness_probe():
    database = await DatabaseHealthCheck.check_connection()
    components_status = {"api": True, "database": database["status"] == "healthy"}
    is_ready = all(components_status.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"ready": is_ready, "components": components_status},
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    response_description="Application liveness status"
)
async def liveness_probe():
    return {"alive": True}
