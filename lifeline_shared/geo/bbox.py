"""
Bounding box helpers.

A bbox is a 4-tuple ``(min_lon, min_lat, max_lon, max_lat)`` in WGS84
degrees. All helpers are pure.
"""

import math
from typing import Sequence, Tuple, Union

from lifeline_shared.errors import InvalidBbox

Bbox = Tuple[float, float, float, float]
LonLat = Tuple[float, float]

EARTH_RADIUS_M = 6378137.0
MAX_MERCATOR_LAT = 89.999999


def format_number(value: float) -> str:
    """Render a number without a trailing ``.0`` for integral floats."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_float(raw: object) -> float:
    if isinstance(raw, bool):
        raise InvalidBbox(f"bbox value is not numeric: {raw!r}")
    if isinstance(raw, str):
        raw = raw.strip()
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InvalidBbox(f"bbox value is not numeric: {raw!r}")
    if not math.isfinite(value):
        raise InvalidBbox(f"bbox value is not finite: {raw!r}")
    return value


def parse_bbox(value: Union[str, Sequence[object]]) -> Bbox:
    """
    Parse a bbox from ``"minLon,minLat,maxLon,maxLat"`` or a 4-item sequence.

    Raises:
        InvalidBbox: If there are not exactly 4 values or any is non-numeric
    """
    if isinstance(value, str):
        parts: Sequence[object] = value.split(",")
    else:
        parts = list(value)

    if len(parts) != 4:
        raise InvalidBbox("bbox must be minLon,minLat,maxLon,maxLat")

    min_lon, min_lat, max_lon, max_lat = (_to_float(p) for p in parts)
    return (min_lon, min_lat, max_lon, max_lat)


def bbox_to_query_param(bbox: Bbox) -> str:
    """Serialize a bbox to its comma-separated query form."""
    return ",".join(format_number(v) for v in bbox)


def clamp_to_world(bbox: Bbox) -> Bbox:
    """Clamp each coordinate independently. A box with min > max stays degenerate."""
    min_lon, min_lat, max_lon, max_lat = bbox
    return (
        max(-180.0, min(180.0, min_lon)),
        max(-90.0, min(90.0, min_lat)),
        max(-180.0, min(180.0, max_lon)),
        max(-90.0, min(90.0, max_lat)),
    )


def centroid(bbox: Bbox) -> LonLat:
    min_lon, min_lat, max_lon, max_lat = bbox
    return ((min_lon + max_lon) / 2, (min_lat + max_lat) / 2)


def contains(bbox: Bbox, point: LonLat) -> bool:
    min_lon, min_lat, max_lon, max_lat = bbox
    lon, lat = point
    return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat


def to_web_mercator(lon: float, lat: float) -> Tuple[float, float]:
    """
    Project WGS84 degrees to spherical Web Mercator meters (EPSG:3857).

    Latitude is clamped to +/-89.999999 because tan() diverges at the poles.
    """
    x = math.radians(lon) * EARTH_RADIUS_M
    clamped = max(min(lat, MAX_MERCATOR_LAT), -MAX_MERCATOR_LAT)
    y = math.log(math.tan(math.pi / 4 + math.radians(clamped) / 2)) * EARTH_RADIUS_M
    return (x, y)
