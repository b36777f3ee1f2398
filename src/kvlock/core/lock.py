"""Lock factory and lock handle built on a store adapter."""

from __future__ import annotations

import asyncio
import datetime as dt
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Optional, TypeVar, Union

from kvlock.core.errors import AcquisitionFailed, LockError, LockNotHeld, StoreTimeout
from kvlock.core.renewal import AutoRenewer, RenewalState, StopSignal
from kvlock.core.store import RELEASE_SCRIPT, RENEW_SCRIPT, Store
from kvlock.utils.logging import get_logger

if TYPE_CHECKING:
    from kvlock.core.settings import LockSettings


logger = get_logger("kvlock.lock")

T = TypeVar("T")
Duration = Union[int, float, dt.timedelta]


def _to_ms(ttl: Duration) -> int:
    seconds = ttl.total_seconds() if isinstance(ttl, dt.timedelta) else float(ttl)
    ms = int(round(seconds * 1000))
    if ms < 1:
        raise ValueError(f"ttl must be at least 1 ms, got {ttl!r}")
    return ms


async def _bounded(call: Awaitable[T], timeout: Optional[float], what: str) -> T:
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as exc:
        raise StoreTimeout(f"{what} exceeded {timeout}s") from exc


class Lock:
    """Handle for one successful acquisition.

    Only :meth:`LockClient.acquire` creates handles. ``renew`` and
    ``release`` act on the store only while the stored value still equals
    this handle's token.
    """

    def __init__(self, store: Store, key: str, token: str, ttl_ms: int) -> None:
        self._store = store
        self._key = key
        self._token = token
        self._ttl_ms = ttl_ms
        self._stop = StopSignal()
        self._renewer: Optional[AutoRenewer] = None
        self._released = False

    @property
    def key(self) -> str:
        return self._key

    @property
    def token(self) -> str:
        return self._token

    @property
    def ttl(self) -> float:
        return self._ttl_ms / 1000.0

    @property
    def released(self) -> bool:
        return self._released

    @property
    def renewal_state(self) -> RenewalState:
        if self._renewer is None:
            return RenewalState.IDLE
        return self._renewer.state

    async def renew(self, *, timeout: Optional[float] = None) -> None:
        """Reset the key's expiration to the configured TTL."""
        if self._released:
            raise LockNotHeld(self._key)
        res = await _bounded(
            self._store.eval_atomic(RENEW_SCRIPT, [self._key], [self._token, self._ttl_ms]),
            timeout,
            f"renew {self._key}",
        )
        if res != 1:
            raise LockNotHeld(self._key)
        logger.debug("Renewed lock %s for %d ms", self._key, self._ttl_ms)

    async def release(self, *, timeout: Optional[float] = None) -> None:
        """Delete the key if this handle still owns it and stop auto-renewal."""
        try:
            if self._released:
                raise LockNotHeld(self._key)
            res = await _bounded(
                self._store.eval_atomic(RELEASE_SCRIPT, [self._key], [self._token]),
                timeout,
                f"release {self._key}",
            )
            self._released = True
            if res != 1:
                raise LockNotHeld(self._key)
            logger.info("Released lock %s", self._key)
        finally:
            self.stop_auto_renew()

    async def auto_renew(self, interval: float, timeout: float) -> None:
        """Renew every ``interval`` seconds until stopped; raises the fatal renewal error.

        Meant to run in its own task, see :meth:`start_auto_renew`.
        """
        await self._new_renewer(interval, timeout).run()

    def start_auto_renew(self, interval: float, timeout: float) -> "asyncio.Task[None]":
        """Spawn :meth:`auto_renew` as a task; bad arguments raise here, not in the task."""
        renewer = self._new_renewer(interval, timeout)
        return asyncio.create_task(renewer.run(), name=f"kvlock-renew-{self._key}")

    def _new_renewer(self, interval: float, timeout: float) -> AutoRenewer:
        if self._renewer is not None and self._renewer.state in (RenewalState.IDLE, RenewalState.RUNNING):
            raise RuntimeError(f"Auto-renewal already running for lock {self._key}")
        self._renewer = AutoRenewer(self.renew, self._stop, interval=interval, timeout=timeout, name=self._key)
        return self._renewer

    def stop_auto_renew(self) -> None:
        if self._stop.close():
            logger.debug("Stop signal sent to auto-renewal of %s", self._key)

    async def _release_on_exit(self) -> None:
        if self._released:
            self.stop_auto_renew()
            return
        try:
            await self.release()
        except LockNotHeld:
            logger.warning("Lock %s was no longer held at release; nothing to clean up", self._key)

    async def __aenter__(self) -> "Lock":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._release_on_exit()

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"Lock(key={self._key!r}, token={self._token!r}, ttl_ms={self._ttl_ms}, {state})"


class LockClient:
    """Entry point that acquires locks against a shared store."""

    def __init__(self, store: Store, *, prefix: str = "") -> None:
        self._store = store
        self._prefix = prefix

    @classmethod
    def from_settings(cls, settings: "LockSettings") -> "LockClient":
        from kvlock.core.store_redis import RedisStore

        return cls(RedisStore.from_url(settings.redis_url), prefix=settings.key_prefix)

    async def acquire(self, key: str, ttl: Duration, *, timeout: Optional[float] = None) -> Lock:
        """Make one non-blocking attempt to take ``key`` for ``ttl``.

        Raises :class:`AcquisitionFailed` when another holder has the key.
        """
        ttl_ms = _to_ms(ttl)
        full_key = f"{self._prefix}{key}"
        token = uuid.uuid4().hex
        created = await _bounded(
            self._store.set_if_absent(full_key, token, ttl_ms),
            timeout,
            f"acquire {full_key}",
        )
        if not created:
            logger.debug("Lock %s is held by another token", full_key)
            raise AcquisitionFailed(full_key)
        logger.info("Acquired lock %s (ttl=%d ms)", full_key, ttl_ms)
        return Lock(self._store, full_key, token, ttl_ms)

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        ttl: Duration,
        *,
        renew_interval: Optional[float] = None,
        renew_timeout: Optional[float] = None,
    ) -> AsyncIterator[Lock]:
        """Hold ``key`` for the duration of the block, optionally auto-renewing.

        On exit auto-renewal is stopped and the lock released. If the block
        finished normally but renewal had failed, the renewal error is raised.
        """
        if renew_interval is not None and renew_interval <= 0:
            raise ValueError("renew_interval must be positive")
        if renew_timeout is not None and renew_timeout <= 0:
            raise ValueError("renew_timeout must be positive")
        handle = await self.acquire(key, ttl)
        task: Optional["asyncio.Task[None]"] = None
        try:
            if renew_interval is not None:
                task = handle.start_auto_renew(renew_interval, renew_timeout or renew_interval)
            yield handle
        except BaseException:
            await self._finish(handle, task)
            raise
        renewal_error = await self._finish(handle, task)
        if renewal_error is not None:
            raise renewal_error

    async def _finish(self, handle: Lock, task: Optional["asyncio.Task[None]"]) -> Optional[LockError]:
        handle.stop_auto_renew()
        renewal_error: Optional[LockError] = None
        try:
            if task is not None:
                try:
                    await task
                except LockError as exc:
                    logger.warning("Auto-renewal of %s ended early: %s", handle.key, exc)
                    renewal_error = exc
        finally:
            await handle._release_on_exit()
        return renewal_error

    async def close(self) -> None:
        await self._store.close()
