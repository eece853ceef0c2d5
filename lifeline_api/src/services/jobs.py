"""BLS LAUS county unemployment rates."""

import structlog

from lifeline_shared.cache import CachePolicy
from lifeline_shared.http import UpstreamFetcher, UpstreamRequest

from lifeline_api.src.config import Settings
from lifeline_api.src.models.queries import UnemploymentQuery
from lifeline_api.src.models.responses import UnemploymentResponse
from lifeline_api.src.normalizers.bls import (
    UPSTREAM,
    bls_error_detector,
    build_bls_request_body,
    normalize_bls_timeseries,
    to_series_id,
)
from lifeline_api.src.services.pipeline import (
    DatasetPipeline,
    PipelineResult,
    build_retry_policy,
    fetch_and_normalize,
)

logger = structlog.get_logger(__name__)

SOURCE = "BLS LAUS"


class JobsService:
    def __init__(self, settings: Settings, fetcher: UpstreamFetcher, pipeline: DatasetPipeline):
        self.settings = settings
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.cache_policy = CachePolicy("laus", settings.bls_cache_ttl)
        self.retry_policy = build_retry_policy(settings, settings.bls_max_retries)

    async def unemployment(self, query: UnemploymentQuery) -> PipelineResult:
        """Monthly unemployment rate for a county between two years, inclusive."""
        series_id = to_series_id(query.county_fips)
        logger.info(
            "unemployment_request",
            county_fips=query.county_fips,
            start=query.start,
            end=query.end,
            series_id=series_id,
        )

        async def produce():
            request = UpstreamRequest(
                upstream=UPSTREAM,
                url=self.settings.bls_api_url,
                method="POST",
                json_body=build_bls_request_body(
                    series_id, query.start, query.end, self.settings.bls_api_key
                ),
                timeout_seconds=self.settings.bls_timeout_seconds,
                error_body=bls_error_detector,
            )
            series = await fetch_and_normalize(
                self.fetcher,
                request,
                self.retry_policy,
                lambda payload: normalize_bls_timeseries(payload, series_id),
            )
            return UnemploymentResponse(source=SOURCE, **series.model_dump()).to_wire()

        return await self.pipeline.run(
            self.cache_policy,
            {"countyFips": query.county_fips, "start": query.start, "end": query.end},
            produce,
        )
