"""
Laundry Service — FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from laundry.api import access, admin, auth, health, inventory, notifications, orders, pricing, reports, staff
from laundry.core.config import get_settings
from laundry.core.errors import LaundryError, laundry_error_handler
from laundry.core.redis_client import close_redis
from laundry.db.database import AsyncSessionLocal, Base, engine
from laundry.domain.pricing import default_catalog
from laundry.middleware.auth import JWTAuthMiddleware
from laundry.middleware.idempotency import IdempotencyMiddleware
from laundry.middleware.rate_limiter import SlidingWindowRateLimiter
from laundry.services.notifications import NotificationService
from laundry.services.reminders import ReminderScheduler

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.catalog = default_catalog(settings.DEFAULT_CURRENCY)
    app.state.notifier = NotificationService()
    app.state.reminders = ReminderScheduler(
        AsyncSessionLocal, app.state.notifier, settings.REMINDER_INTERVAL_SECONDS
    )
    if settings.REMINDERS_ENABLED:
        await app.state.reminders.restore()
    logger.info("%s %s started", settings.SERVICE_NAME, settings.SERVICE_VERSION)

    yield

    await app.state.reminders.shutdown()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Nahati Laundry Service",
    description="Laundry booking backend: pricing, order lifecycle, staff workflow and admin tools.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_exception_handler(LaundryError, laundry_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: auth sets request.state.user before the idempotency
# key is scoped to it.
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(SlidingWindowRateLimiter)
app.add_middleware(JWTAuthMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

for module in (auth, pricing, orders, staff, admin, inventory, notifications, reports, access, health):
    app.include_router(module.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}


def run() -> None:
    """Console entry point: serve the app with uvicorn on HOST:PORT."""
    uvicorn.run("laundry.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
