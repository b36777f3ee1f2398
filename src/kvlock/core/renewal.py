"""Background renewal keeping a held lock alive."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from kvlock.core.errors import LockError, StoreTimeout
from kvlock.utils.logging import get_logger


logger = get_logger("kvlock.renewal")

RenewFn = Callable[..., Awaitable[None]]

_TICK = "tick"
_RETRY = "retry"


class RenewalState(str, Enum):
    """Lifecycle of a single renewal loop."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class StopSignal:
    """One-shot stop signal; only the first ``close()`` has an effect."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> bool:
        """Close the signal. Returns True for the call that actually closed it."""
        if self._closed:
            return False
        self._closed = True
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()


class AutoRenewer:
    """Renews a lock every ``interval`` seconds until stopped or until renewal fails.

    Each attempt is bounded by ``timeout``. A :class:`StoreTimeout` is not
    fatal: it arms a one-shot retry so the next attempt runs right away
    instead of at the next tick. Any other error ends the loop and is raised
    from :meth:`run`. Closing ``stop`` ends the loop cleanly at its next
    scheduling point; an in-flight renewal is allowed to finish, and if it
    reports the lock gone after the stop the loop still ends cleanly.
    """

    def __init__(
        self,
        renew: RenewFn,
        stop: StopSignal,
        *,
        interval: float,
        timeout: float,
        name: str = "lock",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._renew = renew
        self._stop = stop
        self._interval = interval
        self._timeout = timeout
        self._name = name
        self._retry = asyncio.Event()
        self.state = RenewalState.IDLE

    async def run(self) -> None:
        if self.state is not RenewalState.IDLE:
            raise RuntimeError("AutoRenewer can only run once")
        loop = asyncio.get_running_loop()
        self.state = RenewalState.RUNNING
        logger.debug("Auto-renewal started for %s (interval=%.3fs)", self._name, self._interval)
        next_tick = loop.time() + self._interval
        try:
            while True:
                trigger = await self._next_trigger(loop, next_tick)
                if trigger is None:
                    break
                if trigger == _TICK:
                    now = loop.time()
                    next_tick += self._interval
                    # missed ticks are dropped
                    while next_tick <= now:
                        next_tick += self._interval
                else:
                    self._retry.clear()

                try:
                    await self._renew(timeout=self._timeout)
                except StoreTimeout:
                    logger.warning("Renewal of %s timed out after %.3fs; retrying now", self._name, self._timeout)
                    self._retry.set()
                except LockError as exc:
                    # a release that raced this attempt already closed the signal
                    if not self._stop.closed:
                        raise
                    logger.debug("Final renewal of %s after stop: %s", self._name, exc)
                    break
        except asyncio.CancelledError:
            self.state = RenewalState.STOPPED
            raise
        except Exception as exc:
            self.state = RenewalState.FAILED
            logger.error("Auto-renewal for %s failed: %s", self._name, exc)
            raise
        self.state = RenewalState.STOPPED
        logger.debug("Auto-renewal stopped for %s", self._name)

    async def _next_trigger(self, loop: asyncio.AbstractEventLoop, deadline: float) -> Optional[str]:
        """Wait for a tick, a pending retry or the stop signal. None means stop."""
        if self._stop.closed:
            return None
        waiters: Dict["asyncio.Future[None]", Optional[str]] = {
            asyncio.ensure_future(self._stop.wait()): None,
            asyncio.ensure_future(self._retry.wait()): _RETRY,
            asyncio.ensure_future(asyncio.sleep(max(0.0, deadline - loop.time()))): _TICK,
        }
        try:
            done, _ = await asyncio.wait(set(waiters), return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in waiters:
                fut.cancel()
        if self._stop.closed:
            return None
        for fut, kind in waiters.items():
            if fut in done and kind == _RETRY:
                return _RETRY
        return _TICK
