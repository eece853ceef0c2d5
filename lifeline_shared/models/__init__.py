"""Shared data models."""

from .common import (
    ApiModel,
    GeoPoint,
    HealthStatus,
    SourceMeta,
    utc_now_iso,
)

__all__ = [
    "ApiModel",
    "GeoPoint",
    "HealthStatus",
    "SourceMeta",
    "utc_now_iso",
]
