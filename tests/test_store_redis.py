from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from kvlock.core.errors import AcquisitionFailed, LockNotHeld, StoreError, StoreTimeout
from kvlock.core.lock import LockClient
from kvlock.core.store import RELEASE_SCRIPT
from kvlock.core.store_redis import RedisStore


@pytest.mark.asyncio
async def test_set_if_absent_uses_nx_px():
    redis = AsyncMock()
    redis.set.return_value = True
    store = RedisStore(redis)

    assert await store.set_if_absent("k", "tok", 1500) is True
    redis.set.assert_awaited_once_with("k", "tok", px=1500, nx=True)

    redis.set.return_value = None
    assert await store.set_if_absent("k", "tok", 1500) is False


@pytest.mark.asyncio
async def test_eval_passes_keys_then_args():
    redis = AsyncMock()
    redis.eval.return_value = 1
    store = RedisStore(redis)

    assert await store.eval_atomic(RELEASE_SCRIPT, ["k"], ["tok"]) == 1
    redis.eval.assert_awaited_once_with(RELEASE_SCRIPT, 1, "k", "tok")


@pytest.mark.asyncio
async def test_eval_nil_reply_is_none():
    redis = AsyncMock()
    redis.eval.return_value = None
    store = RedisStore(redis)

    assert await store.eval_atomic(RELEASE_SCRIPT, ["k"], ["tok"]) is None


@pytest.mark.asyncio
async def test_redis_errors_are_wrapped_with_cause():
    redis = AsyncMock()
    cause = RedisConnectionError("connection refused")
    redis.set.side_effect = cause
    redis.eval.side_effect = cause
    store = RedisStore(redis)

    with pytest.raises(StoreError) as excinfo:
        await store.set_if_absent("k", "tok", 1000)
    assert excinfo.value.__cause__ is cause
    assert not isinstance(excinfo.value, StoreTimeout)

    with pytest.raises(StoreError) as excinfo:
        await store.eval_atomic(RELEASE_SCRIPT, ["k"], ["tok"])
    assert excinfo.value.__cause__ is cause


@pytest.mark.asyncio
async def test_redis_timeouts_become_store_timeouts():
    redis = AsyncMock()
    redis.eval.side_effect = RedisTimeoutError("read timed out")
    store = RedisStore(redis)

    with pytest.raises(StoreTimeout):
        await store.eval_atomic(RELEASE_SCRIPT, ["k"], ["tok"])


@pytest.mark.asyncio
async def test_close_closes_connection():
    redis = AsyncMock()
    await RedisStore(redis).close()
    redis.aclose.assert_awaited_once()


def test_from_url_decodes_responses():
    with patch("kvlock.core.store_redis.Redis.from_url") as from_url:
        RedisStore.from_url("redis://example:6379/3")
    from_url.assert_called_once_with("redis://example:6379/3", decode_responses=True)


def test_from_url_falls_back_to_env(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://env-host:6379/1")
    with patch("kvlock.core.store_redis.Redis.from_url") as from_url:
        RedisStore.from_url()
    from_url.assert_called_once_with("redis://env-host:6379/1", decode_responses=True)


@pytest_asyncio.fixture
async def redis_store():
    """RedisStore on db 15, skipped when no server is reachable."""
    from redis.asyncio import Redis

    client = Redis.from_url("redis://localhost:6379/15", decode_responses=True)
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        pytest.skip("Redis is not available")
    store = RedisStore(client)
    yield store
    async for key in client.scan_iter("kvlock:test:*"):
        await client.delete(key)
    await store.close()


@pytest.mark.asyncio
async def test_lock_lifecycle_against_redis(redis_store):
    client = LockClient(redis_store, prefix="kvlock:test:")

    lock = await client.acquire("res", 1)
    with pytest.raises(AcquisitionFailed):
        await client.acquire("res", 1)
    await lock.renew(timeout=1)
    await lock.release()
    with pytest.raises(LockNotHeld):
        await lock.release()

    stale = await client.acquire("res", 0.2)
    await asyncio.sleep(0.3)
    fresh = await client.acquire("res", 1)
    with pytest.raises(LockNotHeld):
        await stale.release()
    await fresh.release()
