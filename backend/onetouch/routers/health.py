"""Liveness and readiness probes.

    GET /health         Process is up (no dependency checks)
    GET /health/ready   Database reachable, and Redis when cache or rate limiting use it
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from onetouch.config import settings
from onetouch.database import engine
from onetouch.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness: database unreachable: {e}")
        return f"error: {str(e)[:100]}"
    return "ok"


async def _check_redis() -> str:
    if not (settings.cache_enabled or settings.rate_limit_enabled):
        return "disabled"
    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error(f"Readiness: redis unreachable: {e}")
        return f"error: {str(e)[:100]}"
    finally:
        await client.aclose()
    return "ok"


@router.get("/health")
async def health_check():
    return {
        "status": "ok",
        "service": "OneTouch",
        "environment": settings.environment,
        "timestamp": utcnow().isoformat(),
    }


@router.get("/health/ready")
async def readiness_check():
    checks = {"database": await _check_database(), "redis": await _check_redis()}
    healthy = all(result in ("ok", "disabled") for result in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "checks": checks,
            "timestamp": utcnow().isoformat(),
        },
    )
