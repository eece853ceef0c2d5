"""
Housing router.

Provides:
- HUD-approved housing counselors near a point
- HUD fair market rents for a county and year
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lifeline_api.src.dependencies import get_housing_service, validated_query
from lifeline_api.src.models.queries import CounselorsQuery, FmrQuery
from lifeline_api.src.models.responses import CounselorsResponse, ErrorResponse, FmrResponse
from lifeline_api.src.services.housing import HousingService

router = APIRouter(
    prefix="/housing",
    tags=["Housing"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query"},
        503: {"model": ErrorResponse, "description": "Upstream unavailable"},
    },
)


@router.get("/counselors", response_model=CounselorsResponse)
async def housing_counselors(
    query: CounselorsQuery = Depends(validated_query(CounselorsQuery)),
    service: HousingService = Depends(get_housing_service),
):
    """Counseling agencies within ``radius`` miles (5-100, default 30) of ``lat``/``lon``."""
    result = await service.counselors(query)
    return JSONResponse(content=result.payload, headers=result.headers)


@router.get("/fmr", response_model=FmrResponse)
async def fair_market_rents(
    query: FmrQuery = Depends(validated_query(FmrQuery)),
    service: HousingService = Depends(get_housing_service),
):
    result = await service.fair_market_rents(query)
    return JSONResponse(content=result.payload, headers=result.headers)
