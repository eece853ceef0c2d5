"""Nominatim forward geocoding (US only, single best match)."""

from typing import Any, Optional
from urllib.parse import urlencode

from lifeline_shared.errors import UpstreamErrorBody

from lifeline_api.src.models.responses import GeocodeResponse
from lifeline_api.src.normalizers.fields import to_number

UPSTREAM = "Nominatim"


def build_nominatim_url(query: str, base: str) -> str:
    params = {
        "q": query,
        "format": "jsonv2",
        "addressdetails": "1",
        "limit": "1",
        "countrycodes": "us",
    }
    separator = "&" if "?" in base else "?"
    return f"{base.strip()}{separator}{urlencode(params)}"


def transform_nominatim_result(payload: Any, query: str) -> Optional[GeocodeResponse]:
    """
    First search hit as ``{lat, lon, name}``, or None when nothing matched.

    Raises:
        UpstreamErrorBody: If the hit carries unparseable coordinates
    """
    if not isinstance(payload, list) or not payload:
        return None
    first = payload[0]
    if not isinstance(first, dict):
        return None

    lat = to_number(first.get("lat"))
    lon = to_number(first.get("lon"))
    if lat is None or lon is None:
        raise UpstreamErrorBody(UPSTREAM, "invalid coordinates")

    return GeocodeResponse(lat=lat, lon=lon, name=first.get("display_name") or query)
