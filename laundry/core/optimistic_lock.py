"""
Laundry Service — Optimistic write retries

Writers read a row with its version_id and update it with
"WHERE version_id = <read>". Losing that race raises StaleDataError, and the
decorated function runs again from the read. Once the attempts run out the
caller gets a retryable ConflictError (409) rather than a server error.
"""
import asyncio
import functools
import logging
import random

from laundry.core.config import get_settings
from laundry.core.errors import ConflictError

logger = logging.getLogger(__name__)


class StaleDataError(Exception):
    """The UPDATE matched no row: another transaction bumped version_id first."""


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before the next attempt: base * 2^attempt, capped, plus jitter."""
    settings = get_settings()
    capped = min(settings.OPT_LOCK_BASE_DELAY_MS * (2 ** attempt), settings.OPT_LOCK_MAX_DELAY_MS)
    return (capped + random.uniform(0, settings.OPT_LOCK_JITTER_MS)) / 1000.0


def with_optimistic_retry(max_retries: int | None = None):
    """
    Retry an async optimistic-lock write on StaleDataError.

        @with_optimistic_retry()
        async def _cancel(db, order_id, ...):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempts = max_retries or get_settings().OPT_LOCK_MAX_RETRIES
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except StaleDataError as exc:
                    if attempt >= attempts:
                        logger.error("%s still stale after %d attempts", func.__name__, attempts)
                        raise ConflictError(
                            "The record kept changing while we tried to save it. Please try again."
                        ) from exc
                    delay = backoff_delay(attempt)
                    logger.warning(
                        "Stale write in %s (attempt %d/%d), retrying in %.3fs",
                        func.__name__, attempt, attempts, delay,
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
        return wrapper
    return decorator
