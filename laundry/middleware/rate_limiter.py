"""
Laundry Service — Sliding window rate limiter middleware (Redis-backed)

Implements: RATE_LIMIT_MAX_ATTEMPTS login attempts per
RATE_LIMIT_WINDOW_SECONDS per email address.
Uses sorted sets (ZADD/ZREMRANGEBYSCORE/ZCARD) for a true sliding window.
"""
import json
import logging
import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

from laundry.core.config import get_settings
from laundry.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit:login:"
LIMITED_PATHS = ("/auth/login", "/auth/login/")


def _tracking_key(body: bytes, request: Request) -> str:
    client_host = request.client.host if request.client else "unknown"
    try:
        data = json.loads(body)
    except ValueError:
        return client_host
    email = data.get("email") if isinstance(data, dict) else None
    return str(email).strip().lower() if email else client_host


class SlidingWindowRateLimiter(BaseHTTPMiddleware):
    """
    Applies sliding-window rate limiting ONLY to POST /auth/login.
    Key is derived from the email in the request body.
    Falls back to IP-based key if the email cannot be parsed.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "POST" or request.url.path not in LIMITED_PATHS:
            return await call_next(request)

        # Read body without consuming the stream
        body = await request.body()
        key = f"{RATE_LIMIT_PREFIX}{_tracking_key(body, request)}"
        now = time.time()
        window_start = now - settings.RATE_LIMIT_WINDOW_SECONDS

        try:
            pipe = get_redis().pipeline()
            pipe.zremrangebyscore(key, "-inf", window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS + 1)
            results = await pipe.execute()
            attempt_count = results[1]  # count before this attempt
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing login attempt: %s", exc)
            attempt_count = 0

        if attempt_count >= settings.RATE_LIMIT_MAX_ATTEMPTS:
            logger.warning("Login rate limit hit for %s", key)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": (
                        f"Too many login attempts. Maximum {settings.RATE_LIMIT_MAX_ATTEMPTS} "
                        f"attempts per {settings.RATE_LIMIT_WINDOW_SECONDS} seconds."
                    ),
                    "retry_after_seconds": settings.RATE_LIMIT_WINDOW_SECONDS,
                },
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )

        # Re-attach consumed body so downstream can read it
        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        return await call_next(StarletteRequest(request.scope, receive))
