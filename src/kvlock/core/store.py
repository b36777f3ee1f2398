"""Store adapter contract and the atomic ownership scripts."""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence


# KEYS[1] lock key, ARGV[1] holder token; returns 1 if deleted, otherwise 0
RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""

# KEYS[1] lock key, ARGV[1] holder token, ARGV[2] ttl in milliseconds;
# returns 1 if the expiration was reset, otherwise 0
RENEW_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('pexpire', KEYS[1], ARGV[2])
else
    return 0
end
"""


class Store(Protocol):
    """Key-value store operations the lock protocol depends on.

    Implementations raise :class:`~kvlock.core.errors.StoreError` for
    transport failures and :class:`~kvlock.core.errors.StoreTimeout` when a
    call exceeds its deadline.
    """

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """Create ``key`` with an expiration unless it already exists."""
        ...

    async def eval_atomic(self, script: str, keys: Sequence[str], args: Sequence[Any]) -> Optional[int]:
        """Run ``script`` atomically; ``None`` means the store replied nil."""
        ...

    async def close(self) -> None:
        ...
