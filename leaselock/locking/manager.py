"""Lock manager: token generation and the acquisition algorithm (one immediate attempt, then bounded polling)."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from leaselock.config.settings import get_settings
from leaselock.locking.backend import LockBackend, validate_ttl
from leaselock.locking.exceptions import BackendError, LockTimeoutError
from leaselock.locking.handle import Lock
from leaselock.observability.metrics import emit_metric

logger = logging.getLogger(__name__)


def _uuid_token() -> str:
    return str(uuid.uuid4())


class LockManager:
    """
    Obtains Lock handles from a shared backend. Holds no per-call state, so one
    manager can serve any number of concurrent obtain() calls, for the same key or not.

    Timeout semantics: timeout is in seconds. None, 0 or a negative value means
    wait until the lock is obtained; a positive value bounds the total wait
    across all attempts.
    """

    def __init__(
        self,
        backend: LockBackend,
        *,
        poll_interval_ms: int | None = None,
        key_prefix: str | None = None,
        token_factory: Callable[[], str] | None = None,
        metrics_callback: Any = None,
    ) -> None:
        settings = get_settings()
        self._backend = backend
        if poll_interval_ms is None:
            poll_interval_ms = settings.poll_interval_ms
        if isinstance(poll_interval_ms, bool) or not isinstance(poll_interval_ms, int) or poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be a positive integer, got {poll_interval_ms!r}")
        self._poll_interval = poll_interval_ms / 1000
        self._prefix = settings.key_prefix if key_prefix is None else key_prefix
        self._default_ttl_ms = settings.default_ttl_ms
        self._token_factory = token_factory or _uuid_token
        self._metrics = metrics_callback

    @property
    def backend(self) -> LockBackend:
        return self._backend

    @property
    def poll_interval_seconds(self) -> float:
        return self._poll_interval

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _try_set(self, key: str, store_key: str, token: str, ttl_ms: int) -> bool:
        try:
            return await self._backend.try_set(store_key, token, ttl_ms)
        except Exception as exc:
            emit_metric(self._metrics, "lock_backend_error", key=key)
            raise BackendError("obtain", key, exc) from exc

    async def obtain(self, key: str, ttl_ms: int, timeout: float | None = None) -> Lock:
        """
        Acquire key for ttl_ms milliseconds. Tries once immediately, then every
        poll interval until it succeeds or timeout elapses.

        Raises InvalidTTLError (no backend call), LockTimeoutError, or BackendError.
        Backend failures are not retried.
        """
        ttl_ms = validate_ttl(ttl_ms)
        token = self._token_factory()
        store_key = self._key(key)
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + timeout if timeout is not None and timeout > 0 else None
        attempts = 0

        while True:
            attempts += 1
            if await self._try_set(key, store_key, token, ttl_ms):
                waited_ms = (loop.time() - started) * 1000
                emit_metric(self._metrics, "lock_acquired", key=key)
                emit_metric(self._metrics, "lock_acquire_wait_ms", key=key, latency_ms=waited_ms)
                logger.debug("Obtained lock %s after %d attempt(s), %.1f ms", key, attempts, waited_ms)
                return Lock(
                    self._backend,
                    key,
                    token,
                    ttl_ms,
                    store_key=store_key,
                    metrics_callback=self._metrics,
                )

            delay = self._poll_interval
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    emit_metric(self._metrics, "lock_timeout", key=key)
                    logger.info("Timed out waiting for lock %s after %d attempt(s)", key, attempts)
                    raise LockTimeoutError(key, timeout)
                delay = min(delay, remaining)
            await asyncio.sleep(delay)

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        ttl_ms: int | None = None,
        timeout: float | None = None,
        *,
        auto_refresh: bool = False,
    ) -> AsyncIterator[Lock]:
        """Obtain on enter, release on exit. Optionally keep the lease renewed while inside."""
        ttl_ms = self._default_ttl_ms if ttl_ms is None else ttl_ms
        handle = await self.obtain(key, ttl_ms, timeout)
        if auto_refresh:
            handle.start_auto_refresh(ttl_ms)
        try:
            yield handle
        finally:
            await handle.release()
