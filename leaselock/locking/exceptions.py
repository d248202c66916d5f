"""Lock-layer exceptions. Every failure surfaced by obtain, refresh or release is one of these."""


class LockError(Exception):
    """Base for all lock errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidTTLError(LockError, ValueError):
    """Raised when a lease TTL is not a positive number of milliseconds. No backend call is made."""

    def __init__(self, ttl_ms: object) -> None:
        self.ttl_ms = ttl_ms
        super().__init__(f"TTL must be a positive integer of milliseconds, got {ttl_ms!r}")


class LockTimeoutError(LockError):
    """Raised when the key stayed held by another owner for the whole wait window."""

    def __init__(self, key: str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.3f}s waiting for lock {key!r}")


class BackendError(LockError):
    """Raised when the store fails (transport or protocol). Chained to the client exception."""

    def __init__(self, operation: str, key: str, cause: BaseException) -> None:
        self.operation = operation
        self.key = key
        super().__init__(f"Backend failure during {operation} of lock {key!r}: {cause}")


class OwnershipLostError(LockError):
    """Raised when the stored value no longer matches this handle's token (expired or taken over)."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Lock {key!r} no longer exists or is owned by another token")
