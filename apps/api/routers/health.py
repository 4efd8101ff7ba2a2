"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()


async def _check_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


async def _check_redis() -> str:
    try:
        client = redis.from_url(settings.REDIS_URL)
        try:
            await client.ping()
        finally:
            await client.aclose()
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    The enrichment queue lives in Redis, so a Redis outage degrades the service
    without failing item creation.
    """
    database_status = await _check_database()
    redis_status = await _check_redis()
    degraded = database_status != "up" or redis_status != "up"
    return {
        "status": "degraded" if degraded else "healthy",
        "api": "up",
        "database": database_status,
        "redis": redis_status,
        "link_preview": "configured" if settings.LINK_PREVIEW_API_KEY else "disabled",
        "snapshot": "configured" if settings.SNAPSHOT_SERVICE_URL else "disabled",
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    database_status = await _check_database()
    if database_status != "up":
        return JSONResponse(
            status_code=503,
            content={"ready": False, "database": database_status},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
