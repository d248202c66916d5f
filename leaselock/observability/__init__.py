"""Observability layer: in-memory lock metrics."""

from leaselock.observability.metrics import MetricsCollector, emit_metric

__all__ = [
    "MetricsCollector",
    "emit_metric",
]
