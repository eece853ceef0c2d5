"""HUD housing counselors and fair market rents."""

import structlog

from lifeline_shared.cache import CachePolicy
from lifeline_shared.geo import format_number
from lifeline_shared.http import UpstreamFetcher, UpstreamRequest, error_key_detector

from lifeline_api.src.config import Settings
from lifeline_api.src.models.queries import CounselorsQuery, FmrQuery
from lifeline_api.src.models.responses import CounselorsResponse, FmrResponse
from lifeline_api.src.normalizers.hud import (
    UPSTREAM,
    build_hud_counselors_url,
    build_hud_fmr_url,
    hud_auth_headers,
    transform_hud_fmr,
    transform_hud_to_counselors,
)
from lifeline_api.src.services.pipeline import (
    DatasetPipeline,
    PipelineResult,
    build_retry_policy,
    fetch_and_normalize,
)

logger = structlog.get_logger(__name__)

COUNSELORS_SOURCE = "HUD Housing Counselor API"
FMR_SOURCE = "HUD FMR API"


class HousingService:
    def __init__(self, settings: Settings, fetcher: UpstreamFetcher, pipeline: DatasetPipeline):
        self.settings = settings
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.counselors_policy = CachePolicy("hud:counselors", settings.hud_counselors_cache_ttl)
        self.fmr_policy = CachePolicy("hud:fmr", settings.hud_fmr_cache_ttl)
        self.retry_policy = build_retry_policy(settings, settings.hud_max_retries)

    def _request(self, url: str) -> UpstreamRequest:
        return UpstreamRequest(
            upstream=UPSTREAM,
            url=url,
            headers=hud_auth_headers(self.settings.hud_token),
            timeout_seconds=self.settings.hud_timeout_seconds,
            error_body=error_key_detector,
        )

    async def counselors(self, query: CounselorsQuery) -> PipelineResult:
        """Housing counseling agencies within ``radius`` miles of a point."""
        logger.info("counselors_request", lat=query.lat, lon=query.lon, radius=query.radius)

        async def produce():
            url = build_hud_counselors_url(
                query.lat, query.lon, query.radius, self.settings.hud_counselors_url
            )
            items = await fetch_and_normalize(
                self.fetcher, self._request(url), self.retry_policy, transform_hud_to_counselors
            )
            logger.info("counselors_fetched", count=len(items))
            return CounselorsResponse(items=items, source=COUNSELORS_SOURCE).to_wire()

        return await self.pipeline.run(
            self.counselors_policy,
            {"lat": format_number(query.lat), "lon": format_number(query.lon), "radius": query.radius},
            produce,
        )

    async def fair_market_rents(self, query: FmrQuery) -> PipelineResult:
        """Fair market rents for a county and fiscal year."""
        logger.info("fmr_request", fips=query.fips, year=query.year)

        async def produce():
            url = build_hud_fmr_url(query.fips, query.year, self.settings.hud_fmr_url)
            record = await fetch_and_normalize(
                self.fetcher, self._request(url), self.retry_policy, transform_hud_fmr
            )
            return FmrResponse(
                year=query.year,
                source=FMR_SOURCE,
                data_vintage=str(query.year),
                **record.model_dump(),
            ).to_wire()

        return await self.pipeline.run(
            self.fmr_policy,
            {"fips": query.fips, "year": query.year},
            produce,
        )
