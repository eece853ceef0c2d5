"""Bounding box and projection helpers."""

from .bbox import (
    Bbox,
    LonLat,
    bbox_to_query_param,
    centroid,
    clamp_to_world,
    contains,
    format_number,
    parse_bbox,
    to_web_mercator,
)

__all__ = [
    "Bbox",
    "LonLat",
    "bbox_to_query_param",
    "centroid",
    "clamp_to_world",
    "contains",
    "format_number",
    "parse_bbox",
    "to_web_mercator",
]
