# leaselock/infrastructure/cache/redis_client.py

import redis.asyncio as redis

from leaselock.config.settings import get_settings
from leaselock.locking.backend import validate_ttl

# KEYS[1] = lock key, ARGV[1] = token, ARGV[2] = ttl in milliseconds
REFRESH_SCRIPT = (
    'if redis.call("get", KEYS[1]) == ARGV[1] then '
    'return redis.call("pexpire", KEYS[1], ARGV[2]) '
    "else return 0 end"
)

# KEYS[1] = lock key, ARGV[1] = token
RELEASE_SCRIPT = (
    'if redis.call("get", KEYS[1]) == ARGV[1] then '
    'return redis.call("del", KEYS[1]) '
    "else return 0 end"
)


class RedisLockBackend:
    """
    Lock backend over redis.asyncio. SET NX PX for acquisition, Lua scripts for
    token-checked renew and delete. Scripts are registered once per backend and
    reused (EVALSHA with EVAL fallback handled by redis-py).
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None):
        self._owns_client = client is None
        self.client = client if client is not None else redis.from_url(
            url or get_settings().redis_url,
            decode_responses=True,
        )
        self._refresh = self.client.register_script(REFRESH_SCRIPT)
        self._release = self.client.register_script(RELEASE_SCRIPT)

    async def try_set(self, key: str, token: str, ttl_ms: int) -> bool:
        """Set key to token with expiry only if absent. Returns True if key was set."""
        ttl_ms = validate_ttl(ttl_ms)
        return bool(await self.client.set(key, token, nx=True, px=ttl_ms))

    async def compare_and_renew(self, key: str, token: str, ttl_ms: int) -> bool:
        """Reset expiry of key only if its value equals token (atomic). Returns True if renewed."""
        ttl_ms = validate_ttl(ttl_ms)
        result = await self._refresh(keys=[key], args=[token, ttl_ms])
        return result == 1

    async def compare_and_delete(self, key: str, token: str) -> bool:
        """Delete key only if its value equals token (atomic). Returns True if deleted."""
        result = await self._release(keys=[key], args=[token])
        return result == 1

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        """Close the connection pool if this backend created the client."""
        if self._owns_client:
            await self.client.aclose()
