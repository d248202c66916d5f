"""Locking layer: backend protocol, lock manager, lock handle, exceptions. No concrete store here."""

from leaselock.locking.exceptions import (
    BackendError,
    InvalidTTLError,
    LockError,
    LockTimeoutError,
    OwnershipLostError,
)
from leaselock.locking.backend import LockBackend, validate_ttl
from leaselock.locking.handle import AutoRefresh, Lock, RefreshOutcome
from leaselock.locking.manager import LockManager

__all__ = [
    "AutoRefresh",
    "BackendError",
    "InvalidTTLError",
    "Lock",
    "LockBackend",
    "LockError",
    "LockManager",
    "LockTimeoutError",
    "OwnershipLostError",
    "RefreshOutcome",
    "validate_ttl",
]
