# leaselock/core/context.py

import contextvars

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
lock_key_ctx = contextvars.ContextVar("lock_key", default=None)
