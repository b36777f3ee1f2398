"""Redis store adapter using SET NX PX and EVAL."""

from __future__ import annotations

import os
from typing import Any, Optional, Sequence

from redis.asyncio import Redis
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from .errors import StoreError, StoreTimeout


class RedisStore:
    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "RedisStore":
        return cls(Redis.from_url(url or os.getenv("REDIS_URL", "redis://localhost:6379/0"), decode_responses=True))

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        try:
            return bool(await self._redis.set(key, value, px=ttl_ms, nx=True))
        except RedisTimeoutError as exc:
            raise StoreTimeout(f"SET {key} timed out") from exc
        except RedisError as exc:
            raise StoreError(f"SET {key} failed: {exc}") from exc

    async def eval_atomic(self, script: str, keys: Sequence[str], args: Sequence[Any]) -> Optional[int]:
        try:
            res = await self._redis.eval(script, len(keys), *keys, *args)
        except RedisTimeoutError as exc:
            raise StoreTimeout(f"EVAL on {list(keys)} timed out") from exc
        except RedisError as exc:
            raise StoreError(f"EVAL on {list(keys)} failed: {exc}") from exc
        if res is None:
            return None
        return int(res)

    async def close(self) -> None:
        await self._redis.aclose()
