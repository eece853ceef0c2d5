"""
Application service container.

Shared clients (aiohttp session, Redis, MongoDB) are created once in the
application lifespan and held by ``AppServices`` on ``app.state``. Route
dependencies read services from there; nothing is a module-level global.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp
import structlog
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError
from redis import asyncio as aioredis

from lifeline_shared.cache import ResponseCache
from lifeline_shared.http import UpstreamFetcher
from lifeline_shared.http.retry import SleepFunc
from lifeline_shared.metrics import CivicMetrics
from lifeline_shared.models import HealthStatus

from lifeline_api.src.config import Settings
from lifeline_api.src.repositories.broadband_repo import BroadbandRepository
from lifeline_api.src.repositories.resource_repo import ResourceRepository
from lifeline_api.src.services.broadband import BroadbandService
from lifeline_api.src.services.food import FoodService
from lifeline_api.src.services.geocode import GeocodeService
from lifeline_api.src.services.housing import HousingService
from lifeline_api.src.services.jobs import JobsService
from lifeline_api.src.services.pipeline import DatasetPipeline
from lifeline_api.src.services.resources import ResourceService

logger = structlog.get_logger(__name__)


@dataclass
class AppServices:
    """Everything a request handler may need, built once per process."""

    settings: Settings
    metrics: CivicMetrics
    cache: ResponseCache
    fetcher: UpstreamFetcher
    food: FoodService
    housing: HousingService
    jobs: JobsService
    geocode: GeocodeService
    broadband: Optional[BroadbandService] = None
    resources: Optional[ResourceService] = None
    session: Optional[aiohttp.ClientSession] = None
    mongo_client: Optional[AsyncMongoClient] = None

    async def dependency_health(self) -> Dict[str, HealthStatus]:
        """Ping Redis and MongoDB. Unconfigured stores report ``disabled``."""
        health: Dict[str, HealthStatus] = {}

        if self.cache.enabled:
            healthy = await self.cache.ping()
            health["redis"] = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
        else:
            health["redis"] = HealthStatus.DISABLED

        if self.mongo_client is not None:
            try:
                await self.mongo_client.admin.command("ping")
                health["mongodb"] = HealthStatus.HEALTHY
            except PyMongoError as e:
                logger.warning("mongodb_ping_failed", error=str(e))
                health["mongodb"] = HealthStatus.UNHEALTHY
        else:
            health["mongodb"] = HealthStatus.DISABLED

        return health

    async def close(self) -> None:
        """Close every client this container owns."""
        await self.cache.close()
        if self.session is not None and not self.session.closed:
            await self.session.close()
        if self.mongo_client is not None:
            await self.mongo_client.close()
        logger.info("services_closed")


def build_services(
    settings: Settings,
    session: aiohttp.ClientSession,
    cache: ResponseCache,
    metrics: CivicMetrics,
    resource_repo: Optional[ResourceRepository] = None,
    broadband_repo: Optional[BroadbandRepository] = None,
    mongo_client: Optional[AsyncMongoClient] = None,
    sleep: SleepFunc = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> AppServices:
    """
    Wire services from already-constructed clients.

    Args:
        settings: Application settings
        session: Shared aiohttp session for every upstream call
        cache: Response cache (disabled when built without a Redis client)
        metrics: Metrics sink
        resource_repo: Resource storage, None when MongoDB is not configured
        broadband_repo: Broadband storage, None when MongoDB is not configured
        mongo_client: Owning Mongo client, closed by ``AppServices.close``
        sleep: Backoff sleep, injectable for tests
        rng: Random source for backoff jitter

    Returns:
        AppServices container
    """
    fetcher = UpstreamFetcher(session, metrics=metrics, sleep=sleep, rng=rng)
    pipeline = DatasetPipeline(cache)

    return AppServices(
        settings=settings,
        metrics=metrics,
        cache=cache,
        fetcher=fetcher,
        food=FoodService(settings, fetcher, pipeline),
        housing=HousingService(settings, fetcher, pipeline),
        jobs=JobsService(settings, fetcher, pipeline),
        geocode=GeocodeService(settings, fetcher, pipeline),
        broadband=BroadbandService(broadband_repo) if broadband_repo is not None else None,
        resources=(
            ResourceService(resource_repo, max_results=settings.resources_max_results)
            if resource_repo is not None
            else None
        ),
        session=session,
        mongo_client=mongo_client,
    )


async def create_services(settings: Settings, metrics: CivicMetrics) -> AppServices:
    """Open the shared clients described by ``settings`` and wire services."""
    session = aiohttp.ClientSession()

    redis_client = None
    if settings.redis_url:
        redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
        logger.info("redis_configured")
    else:
        logger.warning("redis_not_configured", detail="response caching disabled")
    cache = ResponseCache(redis_client, metrics=metrics)

    mongo_client = None
    resource_repo = None
    broadband_repo = None
    if settings.mongo_uri:
        mongo_client = AsyncMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
        )
        db = mongo_client[settings.mongo_db]
        resource_repo = ResourceRepository(db)
        broadband_repo = BroadbandRepository(db)
        logger.info("mongodb_configured", database=settings.mongo_db)
    else:
        logger.warning("mongodb_not_configured", detail="resource and broadband routes disabled")

    return build_services(
        settings,
        session,
        cache,
        metrics,
        resource_repo=resource_repo,
        broadband_repo=broadband_repo,
        mongo_client=mongo_client,
    )
