"""Prometheus-style lock metrics. Thread-safe, in-memory. No real Prometheus dependency."""

import threading
from typing import Any


class MetricsCollector:
    """
    In-memory Prometheus-style registry. Tracks counters and latency histograms.
    Thread-safe. Exposes increment, observe_latency, export_metrics.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Counters: name -> value or name -> {"name:key=..." -> value}
        self._counters: dict[str, float] = {}
        self._counters_by_key: dict[str, dict[str, float]] = {}
        # Histograms: name -> list of observed values (e.g. acquire wait)
        self._histograms: dict[str, list[float]] = {}

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        key: str | None = None,
    ) -> None:
        """Increment a counter. Optional lock key for per-resource counts."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value
            if key is not None:
                label = f"{name}:key={key}"
                by_key = self._counters_by_key.setdefault(name, {})
                by_key[label] = by_key.get(label, 0) + value

    def observe_latency(
        self,
        name: str,
        latency_ms: float,
        *,
        key: str | None = None,
    ) -> None:
        """Record a latency observation (histogram-style)."""
        with self._lock:
            bucket = name if key is None else f"{name}:key={key}"
            self._histograms.setdefault(bucket, []).append(latency_ms)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a dict (simulated Prometheus-style)."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_key": {k: dict(v) for k, v in self._counters_by_key.items()},
                "histograms": {
                    k: {
                        "count": len(v),
                        "sum": sum(v),
                        "values": list(v),
                    }
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_key.clear()
            self._histograms.clear()


def emit_metric(metrics_callback: Any, name: str, *, key: str | None = None, latency_ms: float | None = None) -> None:
    """
    Report to a metrics sink. Accepts a MetricsCollector-like object (increment / observe_latency)
    or a plain callable invoked as callback(name, key=..., latency_ms=...).
    """
    if metrics_callback is None:
        return
    if hasattr(metrics_callback, "increment"):
        if latency_ms is not None:
            if hasattr(metrics_callback, "observe_latency"):
                metrics_callback.observe_latency(name, latency_ms, key=key)
        else:
            metrics_callback.increment(name, 1, key=key)
    elif callable(metrics_callback):
        if latency_ms is not None:
            metrics_callback(name, key=key, latency_ms=latency_ms)
        else:
            metrics_callback(name, key=key)
