"""Common Pydantic models shared across services."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ApiModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize with wire aliases, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HealthStatus(str, Enum):
    """Health status enum."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


class GeoPoint(BaseModel):
    """GeoJSON point with ``[lon, lat]`` coordinates."""

    type: str = Field("Point", description="GeoJSON geometry type")
    coordinates: Tuple[float, float] = Field(..., description="[lon, lat]")

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        """Validate longitude and latitude ranges."""
        lon, lat = v
        if not -180 <= lon <= 180:
            raise ValueError(f"longitude out of range: {lon}")
        if not -90 <= lat <= 90:
            raise ValueError(f"latitude out of range: {lat}")
        return v

    model_config = ConfigDict(frozen=True)


class SourceMeta(ApiModel):
    """Provenance attached to every dataset response."""

    source: str = Field(..., description="Upstream dataset name")
    last_updated: str = Field(default_factory=utc_now_iso, description="ISO timestamp of the fetch")
    data_vintage: Optional[str] = Field(None, description="Period the data describes")
