"""Observability layer: audit pipeline metrics."""

from audit_trail.observability.metrics import MetricsCollector

__all__ = ["MetricsCollector"]
