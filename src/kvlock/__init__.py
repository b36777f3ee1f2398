"""Distributed mutual-exclusion lock on an expiring key-value store."""

from kvlock.core import (
    AcquisitionFailed,
    Lock,
    LockClient,
    LockError,
    LockNotHeld,
    MemoryStore,
    RenewalState,
    StoreError,
    StoreTimeout,
)

__all__ = [
    "__version__",
    "AcquisitionFailed",
    "Lock",
    "LockClient",
    "LockError",
    "LockNotHeld",
    "MemoryStore",
    "RenewalState",
    "StoreError",
    "StoreTimeout",
]

__version__ = "0.1.0"
