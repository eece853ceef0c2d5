"""
Query-string models for the dataset routes.

Each route validates its raw query parameters with one of these models
before touching the cache or any upstream. ``parse_query`` turns pydantic
failures into the domain ``ValidationError`` so every route reports a
uniform 400 body.
"""

from typing import Literal, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from lifeline_shared.errors import CivicDataError, ValidationError
from lifeline_shared.geo import Bbox, clamp_to_world, parse_bbox
from lifeline_shared.models import ApiModel

from lifeline_api.src.normalizers.arcgis import DEFAULT_LIMIT, clamp_limit
from lifeline_api.src.models.resources import ResourceType

Q = TypeVar("Q", bound=BaseModel)

FIPS_PATTERN = r"^\d{5}$"
MIN_YEAR = 1990
MAX_YEAR = 2100


class QueryModel(ApiModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)


def format_validation_error(exc: PydanticValidationError) -> str:
    """Condense pydantic errors to ``field: message; ...``."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "__root__")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid request"


def parse_query(model: Type[Q], params: Mapping[str, str]) -> Q:
    """
    Validate raw query parameters against ``model``.

    Raises:
        ValidationError: With a condensed description of every failing field
    """
    try:
        return model.model_validate(dict(params))
    except PydanticValidationError as e:
        raise ValidationError(format_validation_error(e))


def _bbox(value: str) -> Bbox:
    try:
        return clamp_to_world(parse_bbox(value))
    except CivicDataError as e:
        raise ValueError(e.message)


class SnapQuery(QueryModel):
    """``GET /api/food/snap``"""

    bbox: Bbox
    types: Optional[str] = None
    limit: int = DEFAULT_LIMIT

    @field_validator("bbox", mode="before")
    @classmethod
    def parse_and_clamp_bbox(cls, v):
        if not isinstance(v, str):
            raise ValueError("bbox must be minLon,minLat,maxLon,maxLat")
        return _bbox(v)

    @field_validator("limit", mode="before")
    @classmethod
    def default_blank_limit(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_LIMIT
        return v

    @field_validator("limit")
    @classmethod
    def clamp(cls, v: int) -> int:
        return clamp_limit(v)


class CounselorsQuery(QueryModel):
    """``GET /api/housing/counselors``"""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    radius: int = 30

    @field_validator("radius", mode="before")
    @classmethod
    def default_blank_radius(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 30
        return v

    @field_validator("radius")
    @classmethod
    def clamp_radius(cls, v: int) -> int:
        """Search radius in miles, clamped to 5-100."""
        return max(5, min(100, v))


class FmrQuery(QueryModel):
    """``GET /api/housing/fmr``"""

    fips: str = Field(..., pattern=FIPS_PATTERN)
    year: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)


class UnemploymentQuery(QueryModel):
    """``GET /api/jobs/unemployment``"""

    county_fips: str = Field(..., pattern=FIPS_PATTERN)
    start: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)
    end: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)

    @model_validator(mode="after")
    def check_range(self) -> "UnemploymentQuery":
        if self.start > self.end:
            raise ValueError("start must be <= end")
        return self


class BroadbandQuery(QueryModel):
    """``GET /api/broadband/summary``"""

    geo: Literal["county", "tract"] = "county"
    fips: str = Field(..., pattern=r"^\d{5,11}$")


class ResourceListQuery(QueryModel):
    """``GET /api/resources``"""

    bbox: Optional[Bbox] = None
    type: Optional[ResourceType] = None
    queue: bool = False

    @field_validator("bbox", mode="before")
    @classmethod
    def parse_optional_bbox(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if not isinstance(v, str):
            raise ValueError("bbox must be minLon,minLat,maxLon,maxLat")
        return _bbox(v)

    @field_validator("queue", mode="before")
    @classmethod
    def non_empty_means_queue(cls, v):
        # any non-empty value selects the moderation queue
        if isinstance(v, str):
            return bool(v.strip())
        return bool(v)


class GeocodeQuery(QueryModel):
    """``GET /api/geocode``"""

    q: str = Field(..., min_length=1)

    @field_validator("q", mode="before")
    @classmethod
    def strip_query(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v
