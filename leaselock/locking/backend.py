"""Store operations the lock protocol relies on. Injected; all mutual-exclusion correctness rests on their atomicity."""

from typing import Protocol

from leaselock.locking.exceptions import InvalidTTLError


class LockBackend(Protocol):
    """
    Atomic single-key primitives. Keys are fully-qualified store keys.

    try_set must return False (not raise) when the key holds a live value;
    transport failures propagate as the client's own exception.
    """

    async def try_set(self, key: str, token: str, ttl_ms: int) -> bool: ...
    async def compare_and_renew(self, key: str, token: str, ttl_ms: int) -> bool: ...
    async def compare_and_delete(self, key: str, token: str) -> bool: ...


def validate_ttl(ttl_ms: object) -> int:
    """Return ttl_ms if it is a positive int of milliseconds; raise InvalidTTLError otherwise."""
    if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, int) or ttl_ms <= 0:
        raise InvalidTTLError(ttl_ms)
    return ttl_ms
