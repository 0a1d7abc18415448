"""Health check endpoints.

- Checks DB and Redis connectivity
- Returns honest status with component details
"""

from typing import Annotated, Any

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.app.api.deps import get_app_settings
from backend.app.config import Settings
from backend.app.db.engine import get_async_engine

router = APIRouter()


async def check_db(settings: Settings) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    try:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        try:
            await client.ping()
        finally:
            await client.aclose()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict[str, Any] | JSONResponse:
    """Health check endpoint.

    Returns:
        200 with component status if DB and Redis are reachable
        503 otherwise
    """
    db_ok, db_status = await check_db(settings)
    redis_ok, redis_status = await check_redis(settings)

    core_ok = db_ok and redis_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
        },
    }

    if not core_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
