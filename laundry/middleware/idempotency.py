"""
Laundry Service — Idempotency Key Middleware

Checkout retries (flaky mobile networks) must not create duplicate orders:
  - Cache hit  → return cached response immediately (no business logic)
  - Cache miss → execute handler, store response in Redis for 24h

Keys are scoped to the caller's token subject so two customers can never
replay each other's responses.
"""
import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from laundry.core.config import get_settings
from laundry.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

IDEMPOTENCY_PREFIX = "idempotent:"
IDEMPOTENCY_METHODS = {"POST"}
IDEMPOTENCY_PATHS = {"/orders", "/orders/", "/staff/walk-in"}


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """
    Applies to order-creating endpoints.
    Reads Idempotency-Key header and either:
      1. Returns cached response (replay)
      2. Executes handler and caches the response
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in IDEMPOTENCY_METHODS or request.url.path not in IDEMPOTENCY_PATHS:
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key:
            return await call_next(request)

        claims = getattr(request.state, "user", None) or {}
        cache_key = f"{IDEMPOTENCY_PREFIX}{claims.get('sub', 'anonymous')}:{idem_key}"
        redis = get_redis()

        try:
            cached = await redis.get(cache_key)
        except (RedisError, OSError) as exc:
            logger.warning("Idempotency lookup failed, processing request normally: %s", exc)
            return await call_next(request)

        # Cache HIT → replay stored response
        if cached:
            data = json.loads(cached)
            return JSONResponse(
                content=data["body"],
                status_code=data["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        # Cache MISS → proceed to handler
        response = await call_next(request)

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        # Only successful creations are replayed; a rejected checkout may be corrected and resent.
        if 200 <= response.status_code < 300:
            try:
                body = json.loads(body_bytes)
                await redis.setex(
                    cache_key,
                    settings.IDEMPOTENCY_KEY_TTL_SECONDS,
                    json.dumps({"body": body, "status_code": response.status_code}),
                )
            except ValueError:
                logger.warning("Response for %s is not JSON, not caching", request.url.path)
            except (RedisError, OSError) as exc:
                logger.warning("Idempotency store failed for key %s: %s", idem_key, exc)

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
