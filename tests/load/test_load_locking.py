"""
Load test lock layer: many coroutines contending for a handful of keys through one manager.
Asserts: no overlapping critical sections per key, every worker eventually acquires, no stuck renewals.
"""

import asyncio
import time

import pytest

from leaselock.infrastructure.cache.memory_backend import InMemoryLockBackend
from leaselock.locking.handle import RefreshOutcome
from leaselock.locking.manager import LockManager
from leaselock.observability.metrics import MetricsCollector

KEYS = [f"resource:{i}" for i in range(4)]
WORKERS_PER_KEY = 25


@pytest.mark.asyncio
async def test_load_contended_keys():
    metrics = MetricsCollector()
    manager = LockManager(
        backend=InMemoryLockBackend(),
        poll_interval_ms=5,
        metrics_callback=metrics,
    )
    holders: dict[str, int] = {key: 0 for key in KEYS}
    overlaps = 0
    outcomes = []

    async def worker(key: str) -> None:
        nonlocal overlaps
        lock = await manager.obtain(key, ttl_ms=500, timeout=10)
        refresher = lock.start_auto_refresh(500)
        holders[key] += 1
        if holders[key] > 1:
            overlaps += 1
        await asyncio.sleep(0.002)
        holders[key] -= 1
        await lock.release()
        outcomes.append(await refresher.wait())

    start = time.monotonic()
    await asyncio.wait_for(
        asyncio.gather(*(worker(key) for key in KEYS for _ in range(WORKERS_PER_KEY))),
        timeout=15,
    )
    elapsed = time.monotonic() - start

    total = len(KEYS) * WORKERS_PER_KEY
    assert overlaps == 0
    assert len(outcomes) == total
    assert all(o is RefreshOutcome.RELEASED for o in outcomes)
    counters = metrics.export_metrics()["counters"]
    assert counters["lock_acquired"] == total
    assert counters["lock_released"] == total
    assert elapsed < 15
