"""
Broadband router.

Provides:
- Latest county broadband availability summary (FCC National Broadband Map)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lifeline_api.src.dependencies import get_broadband_service, validated_query
from lifeline_api.src.models.queries import BroadbandQuery
from lifeline_api.src.models.responses import BroadbandSummaryResponse, ErrorResponse
from lifeline_api.src.services.broadband import BroadbandService

router = APIRouter(
    prefix="/broadband",
    tags=["Broadband"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query or unsupported geography"},
        404: {"model": ErrorResponse, "description": "No summary ingested"},
        503: {"model": ErrorResponse, "description": "Store not configured"},
    },
)


@router.get("/summary", response_model=BroadbandSummaryResponse)
async def broadband_summary(
    query: BroadbandQuery = Depends(validated_query(BroadbandQuery)),
    service: BroadbandService = Depends(get_broadband_service),
):
    return JSONResponse(content=await service.summary(query))
