"""
Response models for the dataset routes.

Field names are snake_case in Python and camelCase on the wire
(``ApiModel`` alias generator). Responses are serialized with
``to_wire()`` so unset optional fields are omitted.
"""

from typing import List, Optional, Tuple

from pydantic import Field

from lifeline_shared.models import ApiModel, SourceMeta


# ============================================================================
# Error body
# ============================================================================


class ErrorDetail(ApiModel):
    """Structured error payload."""

    code: str = Field(..., description="Machine-readable error code")
    message: Optional[str] = Field(None, description="Human-readable detail")
    upstream: Optional[str] = Field(None, description="Upstream that failed")


class ErrorResponse(ApiModel):
    """``{"error": {...}}`` envelope returned by every failing route."""

    error: ErrorDetail


# ============================================================================
# USDA SNAP
# ============================================================================


class SnapItem(ApiModel):
    """SNAP-authorized retailer."""

    id: str = Field(..., description="SHA-1 of name|address|lon,lat")
    name: str
    address: str
    coords: Tuple[float, float] = Field(..., description="[lon, lat]")
    store_type: Optional[str] = None
    phone: Optional[str] = None
    hours: Optional[str] = None


class SnapResponse(SourceMeta):
    items: List[SnapItem] = Field(default_factory=list)


# ============================================================================
# HUD
# ============================================================================


class CounselorItem(ApiModel):
    """HUD-approved housing counseling agency."""

    id: str
    name: str
    phone: Optional[str] = None
    website: Optional[str] = None
    services: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    coords: Optional[Tuple[float, float]] = Field(None, description="[lon, lat]")


class CounselorsResponse(SourceMeta):
    items: List[CounselorItem] = Field(default_factory=list)


class FmrRecord(ApiModel):
    """Fair market rents by bedroom count for one area."""

    area_name: str = ""
    br0: Optional[float] = None
    br1: Optional[float] = None
    br2: Optional[float] = None
    br3: Optional[float] = None
    br4: Optional[float] = None


class FmrResponse(FmrRecord, SourceMeta):
    year: int

    def to_wire(self) -> dict:
        # bedroom keys are always present, null when HUD omits them
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# BLS
# ============================================================================


class LausPoint(ApiModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="YYYY-MM")
    value: float = Field(..., description="Unemployment rate, percent")


class LausSeries(ApiModel):
    series_id: str
    adjusted: bool = False
    points: List[LausPoint] = Field(default_factory=list)


class UnemploymentResponse(LausSeries, SourceMeta):
    pass


# ============================================================================
# FCC broadband
# ============================================================================


class BroadbandSpeed(ApiModel):
    """Availability of advertised download/upload tiers (Mbps)."""

    tier_25_3: bool = Field(False, alias="25_3")
    tier_100_20: bool = Field(False, alias="100_20")
    tier_1000_100: bool = Field(False, alias="1000_100")


class BroadbandSummaryResponse(SourceMeta):
    provider_count: int = Field(..., ge=0)
    speed: BroadbandSpeed
    tech: List[str] = Field(default_factory=list)
    as_of: str = Field(..., description="YYYY-MM-DD")


# ============================================================================
# Geocoding
# ============================================================================


class GeocodeResponse(ApiModel):
    lat: float
    lon: float
    name: str
