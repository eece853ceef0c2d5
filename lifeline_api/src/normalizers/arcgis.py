"""
USDA SNAP retailer normalizer (ArcGIS FeatureServer).

Builds the envelope query URL for a bbox and maps ArcGIS feature
attributes to ``SnapItem`` models. Features without a name, a street
address or numeric coordinates are skipped.
"""

import hashlib
from typing import Any, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from lifeline_shared.errors import UpstreamErrorBody
from lifeline_shared.geo import Bbox, format_number, to_web_mercator
from lifeline_shared.http import error_key_detector

from lifeline_api.src.models.responses import SnapItem
from lifeline_api.src.normalizers.fields import FieldTable, lowercase_view

UPSTREAM = "USDA"

WGS84 = 4326
WEB_MERCATOR = 102100

DEFAULT_LIMIT = 300
MAX_LIMIT = 500

OUT_FIELDS = (
    "Store_Name",
    "Store_Street_Address",
    "Additonal_Address",
    "City",
    "State",
    "Zip_Code",
    "Zip4",
    "County",
    "Store_Type",
    "Latitude",
    "Longitude",
    "Incentive_Program",
    "Grantee_Name",
)

SNAP_FIELDS = FieldTable(
    name=("store_name", "storename", "name"),
    address1=("store_street_address", "street_address", "address", "addr", "site_address"),
    # "Additonal" is the layer's own spelling
    address2=("additonal_address", "additional_address"),
    city=("city", "municipality"),
    state=("state", "st"),
    zip=("zip", "zip_code", "zipcode", "postalcode"),
    zip4=("zip4", "zip_4", "zipcode_4"),
    store_type=("store_type", "type", "category"),
    phone=("phone", "phone_number", "phonenumber", "phone number"),
    hours=("hours", "store_hours", "opening_hours", "open_hours", "operation_hours"),
    lon=("longitude", "lon", "x"),
    lat=("latitude", "lat", "y"),
)


def clamp_limit(limit: Optional[int]) -> int:
    """Clamp a requested record count to ``[1, MAX_LIMIT]``; None means the default."""
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, int(limit)))


def build_arcgis_url(
    bbox: Bbox,
    limit: int,
    base: str,
    spatial_reference: int = WGS84,
) -> str:
    """
    Build an ArcGIS ``query`` URL for an envelope intersect search.

    Args:
        bbox: (min_lon, min_lat, max_lon, max_lat), already clamped
        limit: Requested record count, clamped to 1-500
        base: FeatureServer layer ``/query`` endpoint
        spatial_reference: 4326 sends the envelope in degrees; 102100
            projects it to Web Mercator meters first

    Returns:
        Full URL. Existing query parameters on ``base`` are preserved.
    """
    min_lon, min_lat, max_lon, max_lat = bbox
    if spatial_reference == WEB_MERCATOR:
        min_x, min_y = to_web_mercator(min_lon, min_lat)
        max_x, max_y = to_web_mercator(max_lon, max_lat)
        envelope = (min_x, min_y, max_x, max_y)
    else:
        envelope = (min_lon, min_lat, max_lon, max_lat)

    params = {
        "f": "json",
        "where": "1=1",
        "inSR": str(spatial_reference),
        "outSR": str(WGS84),
        "spatialRel": "esriSpatialRelIntersects",
        "returnGeometry": "true",
        "geometryType": "esriGeometryEnvelope",
        "geometry": ",".join(format_number(v) for v in envelope),
        "outFields": ",".join(OUT_FIELDS),
        "resultOffset": "0",
        "resultRecordCount": str(clamp_limit(limit)),
        "geometryPrecision": "5",
    }

    parts = urlsplit(base.strip())
    query = dict(parse_qsl(parts.query))
    query.update(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def _coordinate(geometry: Any, axis: str, fallback: Any) -> Any:
    if isinstance(geometry, dict) and geometry.get(axis) is not None:
        return geometry[axis]
    return fallback


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def snap_item_id(name: str, address: str, lon: float, lat: float) -> str:
    """Stable SHA-1 identity of a retailer."""
    raw = f"{name}|{address}|{format_number(lon)},{format_number(lat)}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def transform_arcgis_to_snap_items(payload: Any) -> List[SnapItem]:
    """
    Map an ArcGIS feature collection to SNAP items.

    Raises:
        UpstreamErrorBody: If the payload is an ArcGIS ``{"error": ...}`` envelope
    """
    if not isinstance(payload, dict):
        return []
    detail = error_key_detector(payload)
    if detail is not None:
        raise UpstreamErrorBody(UPSTREAM, detail)

    features = payload.get("features")
    if not isinstance(features, list):
        return []

    items: List[SnapItem] = []
    for feature in features:
        if not isinstance(feature, dict):
            continue
        attrs = lowercase_view(feature.get("attributes"))
        geometry = feature.get("geometry")

        name = SNAP_FIELDS.get(attrs, "name")
        address1 = SNAP_FIELDS.get(attrs, "address1")
        x = _coordinate(geometry, "x", SNAP_FIELDS.get(attrs, "lon"))
        y = _coordinate(geometry, "y", SNAP_FIELDS.get(attrs, "lat"))

        if not name or not address1 or not _is_number(x) or not _is_number(y):
            continue

        zip_code = SNAP_FIELDS.get(attrs, "zip")
        zip4 = SNAP_FIELDS.get(attrs, "zip4")
        postal = f"{zip_code}-{zip4}" if zip_code and zip4 else zip_code
        parts = [
            address1,
            SNAP_FIELDS.get(attrs, "address2"),
            SNAP_FIELDS.get(attrs, "city"),
            SNAP_FIELDS.get(attrs, "state"),
            postal,
        ]
        address = ", ".join(str(p) for p in parts if p)

        store_type = SNAP_FIELDS.get(attrs, "store_type")
        phone = SNAP_FIELDS.get(attrs, "phone")
        hours = SNAP_FIELDS.get(attrs, "hours")

        items.append(
            SnapItem(
                id=snap_item_id(str(name), address, x, y),
                name=str(name),
                address=address,
                coords=(float(x), float(y)),
                store_type=str(store_type) if store_type else None,
                phone=str(phone) if phone else None,
                hours=str(hours) if hours else None,
            )
        )

    return items


def filter_by_store_type(items: List[SnapItem], types: Optional[str]) -> List[SnapItem]:
    """Keep items whose store type exactly matches one of the comma-separated ``types``.

    Matching is case-insensitive. An empty or missing filter keeps everything.
    """
    if not types:
        return items
    wanted = {t.strip().lower() for t in types.split(",") if t.strip()}
    if not wanted:
        return items
    return [item for item in items if item.store_type and item.store_type.lower() in wanted]
