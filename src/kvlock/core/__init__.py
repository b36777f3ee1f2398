"""Core lock protocol: factory, handle, renewal and store adapters."""

from .errors import AcquisitionFailed, LockError, LockNotHeld, StoreError, StoreTimeout
from .lock import Lock, LockClient
from .renewal import AutoRenewer, RenewalState, StopSignal
from .store import RELEASE_SCRIPT, RENEW_SCRIPT, Store
from .store_memory import MemoryStore

__all__ = [
    "AcquisitionFailed",
    "AutoRenewer",
    "Lock",
    "LockClient",
    "LockError",
    "LockNotHeld",
    "MemoryStore",
    "RELEASE_SCRIPT",
    "RENEW_SCRIPT",
    "RenewalState",
    "StopSignal",
    "Store",
    "StoreError",
    "StoreTimeout",
]
