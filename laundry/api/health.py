"""
Laundry Service — Health endpoint

Reports the database and Redis as dependencies (503 if either is down) and
how many unviewed orders are currently being re-announced to staff.
"""
import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from laundry.core.config import get_settings
from laundry.core.redis_client import get_redis
from laundry.db.database import engine

settings = get_settings()
router = APIRouter(tags=["health"])


async def _database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _probe(check, *errors) -> str:
    try:
        await asyncio.wait_for(check(), timeout=settings.HEALTH_CHECK_TIMEOUT)
    except (*errors, OSError, asyncio.TimeoutError) as exc:
        return f"error: {str(exc)[:100]}"
    return "ok"


@router.get("/health")
async def health_check(request: Request):
    deps = {
        "database": await _probe(_database, SQLAlchemyError),
        "redis": await _probe(lambda: get_redis().ping(), RedisError),
    }
    healthy = all(state == "ok" for state in deps.values())
    reminders = getattr(request.app.state, "reminders", None)

    return JSONResponse(
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": deps,
            "active_reminders": len(reminders.active_order_ids) if reminders else 0,
        },
        status_code=200 if healthy else 503,
    )
