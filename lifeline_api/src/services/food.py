"""USDA SNAP retailer search."""

import structlog

from lifeline_shared.cache import CachePolicy
from lifeline_shared.geo import bbox_to_query_param
from lifeline_shared.http import UpstreamFetcher, UpstreamRequest, error_key_detector

from lifeline_api.src.config import Settings
from lifeline_api.src.models.queries import SnapQuery
from lifeline_api.src.models.responses import SnapResponse
from lifeline_api.src.normalizers.arcgis import (
    UPSTREAM,
    build_arcgis_url,
    filter_by_store_type,
    transform_arcgis_to_snap_items,
)
from lifeline_api.src.services.pipeline import (
    DatasetPipeline,
    PipelineResult,
    build_retry_policy,
    fetch_and_normalize,
)

logger = structlog.get_logger(__name__)

SOURCE = "USDA ArcGIS"


class FoodService:
    """SNAP retailers inside a bounding box, cached with jittered expiry."""

    def __init__(self, settings: Settings, fetcher: UpstreamFetcher, pipeline: DatasetPipeline):
        self.settings = settings
        self.fetcher = fetcher
        self.pipeline = pipeline
        self.cache_policy = CachePolicy(
            dataset="snap",
            ttl_seconds=settings.snap_cache_ttl,
            jitter_seconds=settings.snap_cache_jitter,
        )
        self.retry_policy = build_retry_policy(settings, settings.snap_max_retries)

    async def snap_retailers(self, query: SnapQuery) -> PipelineResult:
        bbox_param = bbox_to_query_param(query.bbox)
        logger.info("snap_request", bbox=bbox_param, types=query.types, limit=query.limit)

        async def produce():
            request = UpstreamRequest(
                upstream=UPSTREAM,
                url=build_arcgis_url(
                    query.bbox,
                    query.limit,
                    self.settings.usda_snap_arcgis_feature_url,
                    self.settings.usda_snap_spatial_reference,
                ),
                timeout_seconds=self.settings.snap_timeout_seconds,
                error_body=error_key_detector,
            )
            items = await fetch_and_normalize(
                self.fetcher, request, self.retry_policy, transform_arcgis_to_snap_items
            )
            items = filter_by_store_type(items, query.types)[: query.limit]
            logger.info("snap_fetched", count=len(items))
            return SnapResponse(items=items, source=SOURCE).to_wire()

        return await self.pipeline.run(
            self.cache_policy,
            {"bbox": bbox_param, "types": query.types, "limit": query.limit},
            produce,
        )
