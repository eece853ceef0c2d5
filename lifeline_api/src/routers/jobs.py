"""
Jobs router.

Provides:
- County unemployment rate time series (BLS LAUS)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lifeline_api.src.dependencies import get_jobs_service, validated_query
from lifeline_api.src.models.queries import UnemploymentQuery
from lifeline_api.src.models.responses import ErrorResponse, UnemploymentResponse
from lifeline_api.src.services.jobs import JobsService

router = APIRouter(
    prefix="/jobs",
    tags=["Jobs"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query"},
        503: {"model": ErrorResponse, "description": "Upstream unavailable"},
    },
)


@router.get("/unemployment", response_model=UnemploymentResponse)
async def unemployment(
    query: UnemploymentQuery = Depends(validated_query(UnemploymentQuery)),
    service: JobsService = Depends(get_jobs_service),
):
    """Monthly unemployment rate for ``countyFips`` from ``start`` to ``end`` (years)."""
    result = await service.unemployment(query)
    return JSONResponse(content=result.payload, headers=result.headers)
