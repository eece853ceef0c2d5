"""BLS LAUS county unemployment normalizer."""

from typing import Any, Dict, List, Optional

from lifeline_shared.errors import UpstreamErrorBody

from lifeline_api.src.models.responses import LausPoint, LausSeries
from lifeline_api.src.normalizers.fields import to_number

UPSTREAM = "BLS"
REQUEST_SUCCEEDED = "REQUEST_SUCCEEDED"
ANNUAL_AVERAGE_PERIOD = "M13"


def to_series_id(county_fips: str) -> str:
    """
    LAUS series id for a county's unemployment rate, not seasonally adjusted.

    >>> to_series_id("28163")
    'LAUCN281630000000003'
    """
    state = county_fips[:2]
    county = county_fips[2:5]
    return f"LAUCN{state}{county}0000000003"


def build_bls_request_body(
    series_id: str,
    start_year: int,
    end_year: int,
    api_key: Optional[str] = None,
) -> Dict[str, Any]:
    """POST body for the v2 timeseries endpoint."""
    body: Dict[str, Any] = {
        "seriesid": [series_id],
        "startyear": str(start_year),
        "endyear": str(end_year),
    }
    if api_key:
        body["registrationkey"] = api_key
    return body


def bls_error_detector(payload: Any) -> Optional[str]:
    """Return the failure detail when ``status`` is present and not REQUEST_SUCCEEDED."""
    if not isinstance(payload, dict):
        return None
    status = payload.get("status")
    if not status or status == REQUEST_SUCCEEDED:
        return None
    messages = payload.get("message")
    if isinstance(messages, list) and messages:
        return f"{status}: {'; '.join(str(m) for m in messages)}"
    return str(status)


def _select_series(payload: Dict[str, Any], series_id: str) -> Optional[Dict[str, Any]]:
    results = payload.get("Results") or payload.get("results") or {}
    series = results.get("series") if isinstance(results, dict) else None
    if not isinstance(series, list) or not series:
        return None
    for entry in series:
        if isinstance(entry, dict) and series_id in (entry.get("seriesID"), entry.get("seriesId")):
            return entry
    first = series[0]
    return first if isinstance(first, dict) else None


def _month(period: Any) -> Optional[int]:
    if not isinstance(period, str) or not period.startswith("M"):
        return None
    if period == ANNUAL_AVERAGE_PERIOD:
        return None
    digits = period[1:]
    if not digits.isdigit():
        return None
    month = int(digits)
    if not 1 <= month <= 12:
        return None
    return month


def normalize_bls_timeseries(payload: Any, series_id: str) -> LausSeries:
    """
    Convert a BLS v2 timeseries answer into ascending monthly points.

    The series matching ``series_id`` is used, falling back to the first
    series. Annual averages (M13), non-monthly periods and non-numeric
    values are skipped.

    Raises:
        UpstreamErrorBody: If ``status`` is present and not REQUEST_SUCCEEDED
    """
    if not isinstance(payload, dict):
        return LausSeries(series_id=series_id, points=[])

    detail = bls_error_detector(payload)
    if detail is not None:
        raise UpstreamErrorBody(UPSTREAM, detail)

    series = _select_series(payload, series_id)
    data = series.get("data") if series else None
    if not isinstance(data, list):
        return LausSeries(series_id=series_id, points=[])

    points: List[LausPoint] = []
    for row in data:
        if not isinstance(row, dict):
            continue
        month = _month(row.get("period"))
        year = str(row.get("year") or "").strip()
        value = to_number(row.get("value"))
        if month is None or not year or value is None:
            continue
        points.append(LausPoint(date=f"{year}-{month:02d}", value=value))

    # fixed-width YYYY-MM sorts correctly as text
    points.sort(key=lambda p: p.date)
    return LausSeries(series_id=series_id, points=points)
