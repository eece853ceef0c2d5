"""Metrics module using Prometheus."""

from .prometheus_metrics import (
    CivicMetrics,
    get_metrics,
)

__all__ = [
    "CivicMetrics",
    "get_metrics",
]
