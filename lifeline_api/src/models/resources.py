"""
Community resource models.

Resources are submitted by the public, land in a moderation queue, and
become visible once a moderator records a verification. Type and
coordinates are fixed at creation; there is no update route.
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import ConfigDict, Field, field_validator

from lifeline_shared.models import ApiModel, SourceMeta


class ResourceType(str, Enum):
    """Kinds of community resources."""

    WIFI = "wifi"
    FOOD_PANTRY = "food_pantry"
    MEAL_SITE = "meal_site"
    CLINIC = "clinic"
    OTHER = "other"


class VerifyMethod(str, Enum):
    """How a moderator confirmed a resource."""

    PHONE = "phone"
    SITE = "site"
    EMAIL = "email"


class AuditAction(str, Enum):
    CREATE = "create"
    VERIFY = "verify"


class Contact(ApiModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    site: Optional[str] = None


class CreateResourceRequest(ApiModel):
    """Body of ``POST /api/resources``."""

    type: ResourceType
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    coords: Tuple[float, float] = Field(..., description="[lon, lat]")
    address: Optional[str] = None
    contact: Optional[Contact] = None
    hours: Optional[str] = None

    model_config = ConfigDict(allow_inf_nan=False)

    @field_validator("coords")
    @classmethod
    def validate_coords(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        """Validate longitude and latitude ranges."""
        lon, lat = v
        if not -180 <= lon <= 180:
            raise ValueError(f"longitude out of range: {lon}")
        if not -90 <= lat <= 90:
            raise ValueError(f"latitude out of range: {lat}")
        return v


class VerifyRequest(ApiModel):
    """Body of ``POST /api/resources/{id}/verify``."""

    method: VerifyMethod
    notes: Optional[str] = None
    by: Optional[str] = None


class Verification(ApiModel):
    by: str
    at: str
    method: VerifyMethod


class ResourceItem(ApiModel):
    """A resource as listed by ``GET /api/resources``."""

    id: str
    type: ResourceType
    name: str
    description: Optional[str] = None
    coords: Optional[Tuple[float, float]] = None
    address: Optional[str] = None
    contact: Optional[Contact] = None
    hours: Optional[str] = None
    verified: Optional[Verification] = None


class ResourceListResponse(SourceMeta):
    items: List[ResourceItem] = Field(default_factory=list)


class CreateResourceResponse(ApiModel):
    id: str
    status: str = "queued"


class VerifyResourceResponse(ApiModel):
    id: str
    verified: Verification


class ResourceAudit(ApiModel):
    """Append-only audit entry in ``resourceAudits``."""

    resource_id: str
    action: AuditAction
    by: str
    at: str
    method: Optional[VerifyMethod] = None
    notes: Optional[str] = None
