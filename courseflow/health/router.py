"""Health check endpoints."""

from fastapi import APIRouter, Request

from courseflow.config import get_settings
from courseflow.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - reports which backends the progression service runs on."""
    settings = get_settings()
    state = request.app.state
    return {
        "status": "ready" if getattr(state, "progression_service", None) else "starting",
        "environment": settings.environment,
        "progress_store": getattr(state, "progress_store_backend", "unavailable"),
        "redis": get_redis() is not None,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
