"""Upstream HTTP fetching with retry."""

from .retry import (
    AttemptOutcome,
    AttemptResult,
    FetchResult,
    RetryPolicy,
    UpstreamFetcher,
    UpstreamRequest,
    calculate_delay,
    classify_status,
    error_key_detector,
)

__all__ = [
    "AttemptOutcome",
    "AttemptResult",
    "FetchResult",
    "RetryPolicy",
    "UpstreamFetcher",
    "UpstreamRequest",
    "calculate_delay",
    "classify_status",
    "error_key_detector",
]
