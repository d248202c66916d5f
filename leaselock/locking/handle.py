"""Lock handle: one held lease. Token-checked refresh and release, background auto-refresh loop."""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from leaselock.core.context import lock_key_ctx
from leaselock.locking.backend import LockBackend, validate_ttl
from leaselock.locking.exceptions import BackendError, InvalidTTLError, LockError, OwnershipLostError
from leaselock.observability.metrics import emit_metric

logger = logging.getLogger(__name__)

FailureCallback = Callable[["Lock", LockError], Awaitable[None] | None]


class RefreshOutcome(str, Enum):
    """Terminal state of an auto-refresh loop."""

    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    RELEASED = "released"
    OWNERSHIP_LOST = "ownership_lost"
    BACKEND_ERROR = "backend_error"


class AutoRefresh:
    """
    Running renewal loop for a Lock. Calling the object (or cancel()) stops it;
    safe to call any number of times and never blocks.
    await wait() returns the terminal RefreshOutcome; error holds the exception
    that ended the loop on OWNERSHIP_LOST / BACKEND_ERROR.
    """

    def __init__(
        self,
        lock: "Lock",
        ttl_ms: int,
        on_failure: FailureCallback | None = None,
    ) -> None:
        self._lock = lock
        self._ttl_ms = ttl_ms
        self._on_failure = on_failure
        self._stop = asyncio.Event()
        self._stop_reason = RefreshOutcome.CANCELLED
        self._outcome: RefreshOutcome | None = None
        self._error: LockError | None = None
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def noop(cls, lock: "Lock") -> "AutoRefresh":
        refresher = cls(lock, 0)
        refresher._stop.set()
        refresher._outcome = RefreshOutcome.SKIPPED
        return refresher

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    @property
    def interval_seconds(self) -> float:
        return self._ttl_ms / 3 / 1000

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> RefreshOutcome | None:
        return self._outcome

    @property
    def error(self) -> LockError | None:
        return self._error

    def start(self) -> None:
        self._task = asyncio.create_task(
            self._run(),
            name=f"leaselock-refresh:{self._lock.key}",
        )

    def cancel(self) -> None:
        self._signal(RefreshOutcome.CANCELLED)

    __call__ = cancel

    def _signal(self, reason: RefreshOutcome) -> None:
        # First signal wins; later ones are no-ops.
        if not self._stop.is_set():
            self._stop_reason = reason
            self._stop.set()

    async def wait(self) -> RefreshOutcome:
        """Wait until the loop has stopped and return why."""
        if self._task is not None:
            await self._task
        assert self._outcome is not None
        return self._outcome

    async def _run(self) -> None:
        lock_key_ctx.set(self._lock.key)
        try:
            while True:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
                else:
                    self._finish(self._stop_reason)
                    return

                try:
                    await self._lock.refresh(self._ttl_ms)
                except (OwnershipLostError, BackendError) as exc:
                    if self._stop.is_set():
                        # Released or cancelled while the renewal was in flight.
                        self._finish(self._stop_reason)
                        return
                    await self._fail(exc)
                    return
        except asyncio.CancelledError:
            self._finish(RefreshOutcome.CANCELLED)
            raise

    def _finish(self, outcome: RefreshOutcome, error: LockError | None = None) -> None:
        self._stop.set()
        self._outcome = outcome
        self._error = error
        logger.debug("Auto-refresh for %s stopped: %s", self._lock.key, outcome.value)

    async def _fail(self, exc: LockError) -> None:
        if isinstance(exc, OwnershipLostError):
            logger.warning("Auto-refresh stopped, ownership of %s lost: %s", self._lock.key, exc.message)
            self._finish(RefreshOutcome.OWNERSHIP_LOST, exc)
        else:
            logger.error("Auto-refresh stopped, backend failure for %s: %s", self._lock.key, exc.message)
            self._finish(RefreshOutcome.BACKEND_ERROR, exc)
        if self._on_failure is None:
            return
        try:
            result = self._on_failure(self._lock, exc)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_failure callback raised for lock %s", self._lock.key)


class Lock:
    """
    A held lease on key, proven by token. Created by LockManager.obtain only after
    the backend recorded key -> token. Every mutation is token-checked server-side,
    so a stale handle can never renew or delete another owner's lease.
    """

    def __init__(
        self,
        backend: LockBackend,
        key: str,
        token: str,
        ttl_ms: int,
        *,
        store_key: str | None = None,
        metrics_callback: Any = None,
    ) -> None:
        self._backend = backend
        self._key = key
        self._store_key = store_key or key
        self._token = token
        self._ttl_ms = ttl_ms
        self._metrics = metrics_callback
        self._released = False
        self._auto_refresh: AutoRefresh | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def token(self) -> str:
        return self._token

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    @property
    def released(self) -> bool:
        return self._released

    @property
    def auto_refresh(self) -> AutoRefresh | None:
        return self._auto_refresh

    async def refresh(self, ttl_ms: int | None = None) -> None:
        """
        Reset the lease expiry to ttl_ms (default: current ttl) if we still own it.
        Raises OwnershipLostError if the stored token differs or the key is gone,
        BackendError on store failure.
        """
        ttl_ms = validate_ttl(self._ttl_ms if ttl_ms is None else ttl_ms)
        try:
            renewed = await self._backend.compare_and_renew(self._store_key, self._token, ttl_ms)
        except Exception as exc:
            raise BackendError("refresh", self._key, exc) from exc
        if not renewed:
            emit_metric(self._metrics, "lock_ownership_lost", key=self._key)
            raise OwnershipLostError(self._key)
        self._ttl_ms = ttl_ms
        emit_metric(self._metrics, "lock_refreshed", key=self._key)

    def start_auto_refresh(
        self,
        ttl_ms: int,
        on_failure: FailureCallback | None = None,
    ) -> AutoRefresh:
        """
        Renew the lease every ttl_ms / 3 in a background task until cancelled,
        released, or a renewal fails. Failures are logged, passed to on_failure,
        and exposed on the returned AutoRefresh; they are never raised here.
        Anything but a positive int ttl_ms, or a released lock, yields a no-op AutoRefresh.
        Any loop already running on this lock is stopped first.
        """
        if self._released:
            return AutoRefresh.noop(self)
        try:
            ttl_ms = validate_ttl(ttl_ms)
        except InvalidTTLError:
            logger.debug("Auto-refresh for %s skipped, ttl %r", self._key, ttl_ms)
            return AutoRefresh.noop(self)
        if self._auto_refresh is not None:
            self._auto_refresh.cancel()
        refresher = AutoRefresh(self, ttl_ms, on_failure)
        refresher.start()
        self._auto_refresh = refresher
        return refresher

    async def release(self) -> bool:
        """
        Stop any auto-refresh and delete the lease if we still own it.
        Returns True if this call removed the record, False if it had already
        expired or belongs to someone else. A second call after a completed
        release is a no-op returning False.
        Raises BackendError on store failure; the renewal loop is stopped either
        way and the lock stays unreleased, so release() can be retried.
        """
        if self._released:
            logger.debug("Lock %s already released", self._key)
            return False
        if self._auto_refresh is not None:
            self._auto_refresh._signal(RefreshOutcome.RELEASED)

        try:
            deleted = await self._backend.compare_and_delete(self._store_key, self._token)
        except Exception as exc:
            raise BackendError("release", self._key, exc) from exc

        self._released = True
        emit_metric(self._metrics, "lock_released", key=self._key)
        if not deleted:
            logger.info("Lock %s was already expired or taken over at release", self._key)
        return deleted

    async def __aenter__(self) -> "Lock":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    def __repr__(self) -> str:
        return f"Lock(key={self._key!r}, token={self._token!r}, ttl_ms={self._ttl_ms}, released={self._released})"
