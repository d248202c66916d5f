"""Fixtures for lock unit tests: in-memory backend with real expiry, fast-polling manager."""

import pytest

from leaselock.infrastructure.cache.memory_backend import InMemoryLockBackend
from leaselock.locking.manager import LockManager


class FlakyBackend(InMemoryLockBackend):
    """In-memory backend whose individual operations can be switched to fail (simulated outage)."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_set = False
        self.fail_renew = False
        self.fail_delete = False
        self.set_calls = 0

    async def try_set(self, key: str, token: str, ttl_ms: int) -> bool:
        self.set_calls += 1
        if self.fail_set:
            raise ConnectionError("Redis connection refused")
        return await super().try_set(key, token, ttl_ms)

    async def compare_and_renew(self, key: str, token: str, ttl_ms: int) -> bool:
        if self.fail_renew:
            raise ConnectionError("Redis connection refused")
        return await super().compare_and_renew(key, token, ttl_ms)

    async def compare_and_delete(self, key: str, token: str) -> bool:
        if self.fail_delete:
            raise ConnectionError("Redis connection refused")
        return await super().compare_and_delete(key, token)


@pytest.fixture
def backend():
    return FlakyBackend()


@pytest.fixture
def manager(backend):
    return LockManager(backend=backend, poll_interval_ms=20, key_prefix="")
