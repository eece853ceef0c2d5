"""Prometheus metrics definitions and helpers.

Provides metric definitions for the API routes, upstream fetches and the
response cache.
"""

from functools import lru_cache

from prometheus_client import (
    Counter,
    Histogram,
    REGISTRY,
    CollectorRegistry,
)


class CivicMetrics:
    """Civic Lifeline API metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # HTTP
        self.http_requests = Counter(
            "civic_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=registry,
        )

        self.http_request_duration = Histogram(
            "civic_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=registry,
        )

        # Upstream attempts, labelled success/retryable/fatal
        self.upstream_attempts = Counter(
            "civic_upstream_attempts_total",
            "Upstream HTTP attempts by outcome",
            ["upstream", "outcome"],
            registry=registry,
        )

        self.upstream_retries = Counter(
            "civic_upstream_retries_total",
            "Upstream retries scheduled after a failed attempt",
            ["upstream"],
            registry=registry,
        )

        self.upstream_duration = Histogram(
            "civic_upstream_fetch_duration_seconds",
            "Wall time of a logical upstream fetch including retries",
            ["upstream"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
            registry=registry,
        )

        # Cache
        self.cache_lookups = Counter(
            "civic_cache_lookups_total",
            "Response cache lookups",
            ["dataset", "result"],
            registry=registry,
        )

        self.cache_errors = Counter(
            "civic_cache_errors_total",
            "Response cache failures (non-fatal)",
            ["dataset", "operation"],
            registry=registry,
        )


@lru_cache()
def get_metrics() -> CivicMetrics:
    """Get the process-wide metrics bound to the default registry.

    Collectors can only be registered once per registry, so every app
    instance in the process shares this object.
    """
    return CivicMetrics()
