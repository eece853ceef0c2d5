"""HUD normalizers: housing counselor search and fair market rents."""

import hashlib
import json
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from lifeline_shared.errors import UpstreamErrorBody
from lifeline_shared.geo import format_number
from lifeline_shared.http import error_key_detector

from lifeline_api.src.models.responses import CounselorItem, FmrRecord
from lifeline_api.src.normalizers.fields import FieldTable, lowercase_view, split_list, to_number

UPSTREAM = "HUD"

COUNSELOR_FIELDS = FieldTable(
    id=("id", "agc_code", "agency_id", "org_id"),
    name=("name", "agency_name", "org_name"),
    phone=("phone", "agency_phone"),
    website=("website", "agency_website"),
    lat=("latitude", "lat"),
    lon=("longitude", "lng", "lon"),
)

FMR_FIELDS = FieldTable(
    area_name=("area_name", "areaname", "area", "name", "metro_name", "county_name"),
    br0=("br0", "efficiency", "bedroom0", "fmr0"),
    br1=("br1", "one_bedroom", "one-bedroom", "bedroom1", "fmr1"),
    br2=("br2", "two_bedroom", "two-bedroom", "bedroom2", "fmr2"),
    br3=("br3", "three_bedroom", "three-bedroom", "bedroom3", "fmr3"),
    br4=("br4", "four_bedroom", "four-bedroom", "bedroom4", "fmr4"),
)


def _with_params(base: str, params: Dict[str, str]) -> str:
    parts = urlsplit(base.strip())
    query = dict(parse_qsl(parts.query))
    query.update(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def _raise_on_error_envelope(payload: Any) -> None:
    detail = error_key_detector(payload)
    if detail is not None:
        raise UpstreamErrorBody(UPSTREAM, detail)


# ============================================================================
# Housing counselors
# ============================================================================


def build_hud_counselors_url(lat: float, lon: float, radius: int, base: str) -> str:
    """Proximity search URL: ``lat``, ``lng`` and ``distance`` (miles)."""
    return _with_params(
        base,
        {"lat": format_number(float(lat)), "lng": format_number(float(lon)), "distance": str(radius)},
    )


def _record_id(record: Dict[str, Any], raw_id: Any) -> str:
    if raw_id:
        return str(raw_id)
    compact = json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha1(compact.encode("utf-8")).hexdigest()


def transform_hud_to_counselors(payload: Any) -> List[CounselorItem]:
    """
    Map a HUD agency list to counselor items.

    The list is read from ``results``, ``agencies`` or ``items``. Agencies
    without a name are dropped. ``coords`` is ``[lon, lat]`` only when both
    values are finite numbers.

    Raises:
        UpstreamErrorBody: If the payload is an ``{"error": ...}`` envelope
    """
    if not isinstance(payload, dict):
        return []
    _raise_on_error_envelope(payload)

    records = payload.get("results") or payload.get("agencies") or payload.get("items") or []
    if not isinstance(records, list):
        return []

    items: List[CounselorItem] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        view = lowercase_view(record)
        name = COUNSELOR_FIELDS.get(view, "name")
        if not name:
            continue

        phone = COUNSELOR_FIELDS.get(view, "phone")
        website = COUNSELOR_FIELDS.get(view, "website")

        services = split_list(view["services"]) if isinstance(view.get("services"), list) else None
        if services is None and isinstance(view.get("services_offered"), str):
            services = split_list(view["services_offered"])
        languages = split_list(view["languages"]) if isinstance(view.get("languages"), list) else None
        if languages is None and isinstance(view.get("languages_spoken"), str):
            languages = split_list(view["languages_spoken"])

        lat = to_number(COUNSELOR_FIELDS.get(view, "lat"))
        lon = to_number(COUNSELOR_FIELDS.get(view, "lon"))
        coords = (lon, lat) if lat is not None and lon is not None else None

        items.append(
            CounselorItem(
                id=_record_id(record, COUNSELOR_FIELDS.get(view, "id")),
                name=str(name),
                phone=str(phone) if phone else None,
                website=str(website) if website else None,
                services=services,
                languages=languages,
                coords=coords,
            )
        )

    return items


# ============================================================================
# Fair market rents
# ============================================================================


def build_hud_fmr_url(fips: str, year: int, base: str) -> str:
    return _with_params(base, {"fips": fips, "year": str(year)})


def _first_record(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else {}
    return value


def _select_fmr_record(payload: Any) -> Dict[str, Any]:
    record = payload
    if isinstance(payload, dict):
        record = payload.get("fmr") or payload.get("data") or payload.get("result") or payload
    record = _first_record(record)
    if not isinstance(record, dict):
        return {}

    # County-level answers nest the rents under "basicdata"
    basic = _first_record(record.get("basicdata"))
    if isinstance(basic, dict):
        merged = dict(record)
        merged.update(basic)
        return merged
    return record


def transform_hud_fmr(payload: Any) -> FmrRecord:
    """
    Extract area name and bedroom rents from a HUD FMR answer.

    Bedroom values are coerced to numbers; an absent or non-numeric value
    becomes None. There is no range validation.

    Raises:
        UpstreamErrorBody: If the payload is an ``{"error": ...}`` envelope
    """
    _raise_on_error_envelope(payload)
    values = FMR_FIELDS.extract(_select_fmr_record(payload))
    area_name = values.pop("area_name")

    return FmrRecord(
        area_name=str(area_name) if area_name is not None else "",
        **{bedroom: to_number(value) for bedroom, value in values.items()},
    )


def hud_auth_headers(token: Optional[str]) -> Dict[str, str]:
    """Bearer header for the HUD User API when a token is configured."""
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}
