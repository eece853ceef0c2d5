"""
Geocode router.

Provides:
- Free-text US location lookup (OpenStreetMap Nominatim)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lifeline_api.src.dependencies import get_geocode_service, validated_query
from lifeline_api.src.models.queries import GeocodeQuery
from lifeline_api.src.models.responses import ErrorResponse, GeocodeResponse
from lifeline_api.src.services.geocode import GeocodeService

router = APIRouter(
    tags=["Geocode"],
    responses={
        400: {"model": ErrorResponse, "description": "Missing query"},
        404: {"model": ErrorResponse, "description": "No match"},
        503: {"model": ErrorResponse, "description": "Upstream unavailable"},
    },
)


@router.get("/geocode", response_model=GeocodeResponse)
async def geocode(
    query: GeocodeQuery = Depends(validated_query(GeocodeQuery)),
    service: GeocodeService = Depends(get_geocode_service),
):
    result = await service.geocode(query)
    return JSONResponse(content=result.payload, headers=result.headers)
