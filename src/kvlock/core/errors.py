"""Error taxonomy for lock operations."""

from __future__ import annotations


class LockError(Exception):
    """Base class for every error raised by kvlock."""


class AcquisitionFailed(LockError):
    """The key is already held by another token."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Lock '{key}' is already held")
        self.key = key


class LockNotHeld(LockError):
    """The lock expired, was deleted, or now belongs to someone else."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Lock '{key}' is not held by this handle")
        self.key = key


class StoreError(LockError):
    """Connectivity or protocol failure reported by the store adapter."""


class StoreTimeout(StoreError):
    """A store call did not finish before its deadline."""
