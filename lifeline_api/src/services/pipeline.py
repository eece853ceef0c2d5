"""
Fetch, normalize and cache flow shared by every dataset route.

A request runs ``cache lookup -> produce -> cache store``. ``produce`` is
the route-specific part (upstream fetch, normalize, filter, limit) and is
only awaited on a miss. Cache failures never change the outcome: the
``ResponseCache`` already turns them into misses and no-op writes.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, TypeVar

import structlog

from lifeline_shared.cache import CachePolicy, ResponseCache, cache_key
from lifeline_shared.cache.keys import Scalar
from lifeline_shared.errors import UpstreamError, UpstreamUnavailableError
from lifeline_shared.http import FetchResult, RetryPolicy, UpstreamFetcher, UpstreamRequest

logger = structlog.get_logger(__name__)

CACHE_HIT = "hit"
CACHE_MISS = "miss"

T = TypeVar("T")


@dataclass
class PipelineResult:
    payload: Dict[str, Any]
    cache_status: str

    @property
    def headers(self) -> Dict[str, str]:
        return {"x-cache": self.cache_status}


class DatasetPipeline:
    """Read-through/write-through wrapper around a payload producer."""

    def __init__(self, cache: ResponseCache):
        self.cache = cache

    async def run(
        self,
        policy: CachePolicy,
        key_params: Mapping[str, Scalar],
        produce: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> PipelineResult:
        """
        Serve ``key_params`` from cache or from ``produce``.

        Args:
            policy: Dataset name and TTL policy
            key_params: Validated query parameters that identify the response
            produce: Coroutine factory building the response on a miss

        Returns:
            PipelineResult with the payload and ``hit``/``miss`` status

        Raises:
            Whatever ``produce`` raises; nothing is cached in that case.
        """
        key = cache_key(policy.dataset, key_params)

        cached = await self.cache.get(key, policy.dataset)
        if cached is not None:
            logger.info("dataset_served", dataset=policy.dataset, cache=CACHE_HIT)
            return PipelineResult(payload=cached, cache_status=CACHE_HIT)

        payload = await produce()
        await self.cache.set(key, payload, policy)

        logger.info("dataset_served", dataset=policy.dataset, cache=CACHE_MISS)
        return PipelineResult(payload=payload, cache_status=CACHE_MISS)


def build_retry_policy(settings, max_retries: int) -> RetryPolicy:
    """Retry policy for one upstream from the shared backoff settings."""
    return RetryPolicy(
        max_retries=max_retries,
        initial_delay=settings.retry_initial_delay,
        max_delay=settings.retry_max_delay,
        jitter_range=settings.retry_jitter_range,
        retry_client_errors=settings.retry_client_errors,
    )


async def fetch_and_normalize(
    fetcher: UpstreamFetcher,
    request: UpstreamRequest,
    policy: RetryPolicy,
    normalize: Callable[[Any], T],
) -> T:
    """
    Fetch ``request`` with retries and apply ``normalize`` to the body.

    Raises:
        UpstreamUnavailableError: When retries are exhausted, a fatal status
            is returned, or the normalizer rejects the body as an error
    """
    result: FetchResult = await fetcher.fetch_json(request, policy)
    if not result.ok:
        logger.error(
            "upstream_failed",
            upstream=request.upstream,
            attempts=result.attempts,
            outcome=result.outcome.value,
            error=str(result.error),
        )
    payload = result.unwrap()

    try:
        return normalize(payload)
    except UpstreamError as e:
        logger.error("upstream_failed", upstream=request.upstream, error=str(e))
        raise UpstreamUnavailableError(request.upstream, cause=e)
