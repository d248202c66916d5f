"""
Redis-backed distributed lock with TTL leases, token-checked release and auto-refresh.

    manager = LockManager(RedisLockBackend(url="redis://localhost:6379/0"))
    lock = await manager.obtain("job:42", ttl_ms=10_000, timeout=5)
    refresher = lock.start_auto_refresh(10_000)
    try:
        ...
    finally:
        await lock.release()
"""

from typing import Any

from leaselock.infrastructure.cache.memory_backend import InMemoryLockBackend
from leaselock.infrastructure.cache.redis_client import RedisLockBackend
from leaselock.locking import (
    AutoRefresh,
    BackendError,
    InvalidTTLError,
    Lock,
    LockBackend,
    LockError,
    LockManager,
    LockTimeoutError,
    OwnershipLostError,
    RefreshOutcome,
)

__version__ = "0.1.0"


async def obtain(client: Any, key: str, ttl_ms: int, timeout: float | None = None) -> Lock:
    """
    One-shot obtain. client is a redis.asyncio.Redis or anything implementing LockBackend.
    """
    backend = client if hasattr(client, "try_set") else RedisLockBackend(client=client)
    return await LockManager(backend).obtain(key, ttl_ms, timeout)


__all__ = [
    "AutoRefresh",
    "BackendError",
    "InMemoryLockBackend",
    "InvalidTTLError",
    "Lock",
    "LockBackend",
    "LockError",
    "LockManager",
    "LockTimeoutError",
    "OwnershipLostError",
    "RedisLockBackend",
    "RefreshOutcome",
    "obtain",
]
