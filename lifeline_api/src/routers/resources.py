"""
Community resources router.

Provides REST API endpoints for:
- Listing verified resources (or the moderation queue with ``?queue=1``)
- Submitting a new resource for moderation
- Recording a moderator verification

Verification requires the moderator API key when ``MODERATOR_API_KEY`` is set.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from lifeline_api.src.dependencies import (
    get_resource_service,
    get_user_email,
    require_moderator,
    validated_query,
)
from lifeline_api.src.models.queries import ResourceListQuery
from lifeline_api.src.models.resources import (
    CreateResourceRequest,
    CreateResourceResponse,
    ResourceListResponse,
    VerifyRequest,
    VerifyResourceResponse,
)
from lifeline_api.src.models.responses import ErrorResponse
from lifeline_api.src.services.resources import ResourceService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/resources",
    tags=["Resources"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        503: {"model": ErrorResponse, "description": "Store not configured"},
    },
)


@router.get("", response_model=ResourceListResponse)
async def list_resources(
    query: ResourceListQuery = Depends(validated_query(ResourceListQuery)),
    service: ResourceService = Depends(get_resource_service),
):
    """
    List community resources.

    Query:
        bbox: Optional minLon,minLat,maxLon,maxLat filter
        type: Optional resource type
        queue: Any non-empty value lists unverified submissions too
    """
    return JSONResponse(content=await service.list_resources(query))


@router.post(
    "",
    response_model=CreateResourceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_resource(
    body: CreateResourceRequest,
    service: ResourceService = Depends(get_resource_service),
    user_email: Optional[str] = Depends(get_user_email),
):
    """Submit a resource. It stays in the moderation queue until verified."""
    created = await service.create(body, submitted_by=user_email)
    return JSONResponse(content=created, status_code=status.HTTP_201_CREATED)


@router.post(
    "/{resource_id}/verify",
    response_model=VerifyResourceResponse,
    dependencies=[Depends(require_moderator)],
    responses={
        403: {"model": ErrorResponse, "description": "Moderator key mismatch"},
        404: {"model": ErrorResponse, "description": "Resource not found"},
    },
)
async def verify_resource(
    resource_id: str,
    body: VerifyRequest,
    service: ResourceService = Depends(get_resource_service),
    user_email: Optional[str] = Depends(get_user_email),
):
    """Record how a moderator confirmed the resource."""
    verified = await service.verify(resource_id, body, user_email=user_email)
    return JSONResponse(content=verified)
