"""
Health endpoints: dependency status for operators and probes for orchestration.
"""

from typing import Any, Dict

import redis.asyncio as redis
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import engine

router = APIRouter()


def _geocoder_status(request: Request) -> Dict[str, Any]:
    geocoder = getattr(request.app.state, "geocoder", None)
    if geocoder is not None:
        return {"status": "ready", "cached_cities": len(geocoder.cache)}
    if settings.MAPBOX_ACCESS_TOKEN.strip():
        return {"status": "configured"}
    return {"status": "missing_token"}


@router.get("/health")
async def health_check(request: Request):
    """
    Report database, Redis and geocoder state.
    Redis only backs rate limiting, so an outage there is reported but
    does not degrade overall status.
    """
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "redis": "unknown",
        "geocoder": _geocoder_status(request),
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except (SQLAlchemyError, OSError) as e:
        health_status["database"] = f"down: {e}"
        health_status["status"] = "degraded"

    client = redis.from_url(settings.REDIS_URL)
    try:
        await client.ping()
        health_status["redis"] = "up"
    except (RedisError, OSError) as e:
        health_status["redis"] = f"down (local rate limits): {e}"
    finally:
        await client.aclose()

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Ready once a Mapbox token is set; the map and place search depend on it."""
    if not settings.MAPBOX_ACCESS_TOKEN.strip():
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": ["MAPBOX_ACCESS_TOKEN"]},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
