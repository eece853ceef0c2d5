"""Place-name lookup through Nominatim."""

import structlog

from lifeline_shared.cache import CachePolicy
from lifeline_shared.errors import NotFoundError
from lifeline_shared.http import UpstreamFetcher, UpstreamRequest

from lifeline_api.src.config import Settings
from lifeline_api.src.models.queries import GeocodeQuery
from lifeline_api.src.normalizers.nominatim import (
    UPSTREAM,
    build_nominatim_url,
    transform_nominatim_result,
)
from lifeline_api.src.services.pipeline import (
    DatasetPipeline,
    PipelineResult,
    build_retry_policy,
    fetch_and_normalize,
)

logger = structlog.get_logger(__name__)


class GeocodeService:
    def __init__(self, settings: Settings, fetcher: UpstreamFetcher, pipeline: DatasetPipeline):
        self.settings = settings
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.cache_policy = CachePolicy("geocode", settings.geocode_cache_ttl)
        self.retry_policy = build_retry_policy(settings, settings.geocode_max_retries)

    async def geocode(self, query: GeocodeQuery) -> PipelineResult:
        """
        Resolve a free-text US location to coordinates.

        Misses are not cached, so a place added to OSM later is found on
        the next lookup.

        Raises:
            NotFoundError: If Nominatim has no match
            UpstreamUnavailableError: If Nominatim fails or returns bad coordinates
        """

        async def produce():
            request = UpstreamRequest(
                upstream=UPSTREAM,
                url=build_nominatim_url(query.q, self.settings.nominatim_url),
                headers={"user-agent": self.settings.geocode_user_agent},
                timeout_seconds=self.settings.geocode_timeout_seconds,
            )
            hit = await fetch_and_normalize(
                self.fetcher,
                request,
                self.retry_policy,
                lambda payload: transform_nominatim_result(payload, query.q),
            )
            if hit is None:
                logger.info("geocode_no_match", query=query.q)
                raise NotFoundError("No matching locations found.")
            return hit.to_wire()

        return await self.pipeline.run(self.cache_policy, {"q": query.q.lower()}, produce)
