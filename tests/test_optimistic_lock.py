"""
Optimistic locking retry decorator tests.
"""
import pytest

from laundry.core.errors import ConflictError
from laundry.core.optimistic_lock import StaleDataError, with_optimistic_retry


@pytest.mark.asyncio
async def test_retries_until_write_lands():
    attempts = []

    @with_optimistic_retry(max_retries=3)
    async def write():
        attempts.append(1)
        if len(attempts) < 3:
            raise StaleDataError("lost the race")
        return "ok"

    assert await write() == "ok"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    attempts = []

    @with_optimistic_retry(max_retries=2)
    async def write():
        attempts.append(1)
        raise StaleDataError("always stale")

    with pytest.raises(ConflictError) as info:
        await write()
    assert len(attempts) == 2
    assert isinstance(info.value.__cause__, StaleDataError)
    assert info.value.to_dict()["retryable"] is True


@pytest.mark.asyncio
async def test_caller_conflicts_are_not_retried():
    attempts = []

    @with_optimistic_retry(max_retries=3)
    async def write():
        attempts.append(1)
        raise ConflictError("expected version 1, found 2", current_version=2)

    with pytest.raises(ConflictError):
        await write()
    assert len(attempts) == 1


def test_backoff_is_capped(monkeypatch):
    from laundry.core import optimistic_lock

    monkeypatch.setattr(optimistic_lock.random, "uniform", lambda a, b: 0)
    assert optimistic_lock.backoff_delay(1) < optimistic_lock.backoff_delay(2)
    settings = optimistic_lock.get_settings()
    assert optimistic_lock.backoff_delay(30) == settings.OPT_LOCK_MAX_DELAY_MS / 1000.0
