"""In-process store with expiring keys, for tests and single-process use."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .errors import StoreError
from .store import RELEASE_SCRIPT, RENEW_SCRIPT


Clock = Callable[[], float]


class MemoryStore:
    """Dictionary-backed store honoring the same atomic script contracts.

    Scripts are matched by their text against :data:`RELEASE_SCRIPT` and
    :data:`RENEW_SCRIPT` and executed natively; any other script is rejected
    with :class:`StoreError`. ``clock`` returns seconds and defaults to
    :func:`time.monotonic`.
    """

    def __init__(self, *, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = asyncio.Lock()
        self._scripts: Dict[str, Callable[[str, Sequence[Any]], int]] = {
            RELEASE_SCRIPT: self._compare_and_delete,
            RENEW_SCRIPT: self._compare_and_expire,
        }

    def _live(self, key: str) -> Optional[Tuple[str, float]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._data[key]
            return None
        return entry

    def _compare_and_delete(self, key: str, args: Sequence[Any]) -> int:
        entry = self._live(key)
        if entry is None or entry[0] != str(args[0]):
            return 0
        del self._data[key]
        return 1

    def _compare_and_expire(self, key: str, args: Sequence[Any]) -> int:
        entry = self._live(key)
        if entry is None or entry[0] != str(args[0]):
            return 0
        self._data[key] = (entry[0], self._clock() + int(args[1]) / 1000.0)
        return 1

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        async with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._clock() + ttl_ms / 1000.0)
            return True

    async def eval_atomic(self, script: str, keys: Sequence[str], args: Sequence[Any]) -> Optional[int]:
        handler = self._scripts.get(script)
        if handler is None:
            raise StoreError("MemoryStore cannot execute an unknown script")
        if len(keys) != 1:
            raise StoreError(f"Expected exactly one key, got {len(keys)}")
        async with self._lock:
            return handler(keys[0], args)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    async def pttl(self, key: str) -> int:
        """Remaining lifetime in milliseconds, or -2 when the key is absent."""
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            return int(round((entry[1] - self._clock()) * 1000))

    async def close(self) -> None:
        async with self._lock:
            self._data.clear()
