"""
Food router.

Provides:
- SNAP-authorized retailers within a bounding box (USDA ArcGIS)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lifeline_api.src.dependencies import get_food_service, validated_query
from lifeline_api.src.models.queries import SnapQuery
from lifeline_api.src.models.responses import ErrorResponse, SnapResponse
from lifeline_api.src.services.food import FoodService

router = APIRouter(
    prefix="/food",
    tags=["Food"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query"},
        503: {"model": ErrorResponse, "description": "Upstream unavailable"},
    },
)


@router.get("/snap", response_model=SnapResponse)
async def snap_retailers(
    query: SnapQuery = Depends(validated_query(SnapQuery)),
    service: FoodService = Depends(get_food_service),
):
    """
    SNAP retailers inside ``bbox``.

    Query:
        bbox: minLon,minLat,maxLon,maxLat
        types: Comma-separated store types to keep (case-insensitive exact match)
        limit: 1-500, default 300
    """
    result = await service.snap_retailers(query)
    return JSONResponse(content=result.payload, headers=result.headers)
