"""In-memory lock backend with real millisecond expiry. For tests or single-process use."""

import time

from leaselock.locking.backend import validate_ttl


class InMemoryLockBackend:
    """
    key -> (token, expires_at) on the monotonic clock. Expired entries behave as absent.
    No method awaits, so each operation is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> tuple[str, float] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry[1] <= time.monotonic():
            del self._store[key]
            return None
        return entry

    async def try_set(self, key: str, token: str, ttl_ms: int) -> bool:
        ttl_ms = validate_ttl(ttl_ms)
        if self._live(key) is not None:
            return False
        self._store[key] = (token, time.monotonic() + ttl_ms / 1000)
        return True

    async def compare_and_renew(self, key: str, token: str, ttl_ms: int) -> bool:
        ttl_ms = validate_ttl(ttl_ms)
        entry = self._live(key)
        if entry is None or entry[0] != token:
            return False
        self._store[key] = (token, time.monotonic() + ttl_ms / 1000)
        return True

    async def compare_and_delete(self, key: str, token: str) -> bool:
        entry = self._live(key)
        if entry is None or entry[0] != token:
            return False
        del self._store[key]
        return True

    def get(self, key: str) -> str | None:
        """Current token at key, or None if absent or expired."""
        entry = self._live(key)
        return entry[0] if entry else None

    def pttl(self, key: str) -> int:
        """Remaining lifetime in ms; -2 if absent (Redis convention)."""
        entry = self._live(key)
        if entry is None:
            return -2
        return max(0, int((entry[1] - time.monotonic()) * 1000))

    def clear(self) -> None:
        self._store.clear()
