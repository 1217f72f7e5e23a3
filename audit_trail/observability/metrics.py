"""Prometheus-style metrics collector for the audit pipeline. Thread-safe, in-memory."""

import threading
from typing import Any

RECORDS_WRITTEN = "audit_records_written_total"
RECORDS_REJECTED = "audit_records_rejected_total"
WRITE_FAILURES = "audit_write_failures_total"
JOBS_DROPPED = "audit_jobs_dropped_total"
WRITE_LATENCY = "audit_write_latency_ms"


class MetricsCollector:
    """
    In-memory Prometheus-style registry. Tracks counters and histograms.
    Thread-safe. Exposes increment, observe_latency, export_metrics.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        # name -> [count, sum, max]; observations are not retained.
        self._histograms: dict[str, list[float]] = {}

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        severity: str | None = None,
    ) -> None:
        """Increment a counter. Optional severity label for dimensional metrics."""
        with self._lock:
            if severity is not None:
                key = f"{name}:severity={severity}"
                labels = self._counters_by_labels.setdefault(name, {})
                labels[key] = labels.get(key, 0) + value
            self._counters[name] = self._counters.get(name, 0) + value

    def observe_latency(self, name: str, latency_ms: float) -> None:
        """Record a latency observation (histogram-style)."""
        with self._lock:
            summary = self._histograms.setdefault(name, [0, 0.0, latency_ms])
            summary[0] += 1
            summary[1] += latency_ms
            summary[2] = max(summary[2], latency_ms)

    def counter(self, name: str) -> float:
        with self._lock:
            return self._counters.get(name, 0)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a dict."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {
                    k: dict(v) for k, v in self._counters_by_labels.items()
                },
                "histograms": {
                    k: {"count": int(v[0]), "sum": v[1], "max": v[2]}
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
