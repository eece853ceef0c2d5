"""
Unit tests for the cache-lookup -> produce -> cache-store pipeline.
"""

from unittest.mock import AsyncMock

import pytest

from lifeline_shared.cache import CachePolicy, ResponseCache, cache_key
from lifeline_shared.errors import UpstreamUnavailableError
from lifeline_shared.http import RetryPolicy, UpstreamFetcher, UpstreamRequest

from lifeline_api.src.normalizers.bls import normalize_bls_timeseries
from lifeline_api.src.services.pipeline import (
    CACHE_HIT,
    CACHE_MISS,
    DatasetPipeline,
    build_retry_policy,
    fetch_and_normalize,
)

from tests.conftest import FakeRedis, FakeResponse, FakeSession


class TestDatasetPipeline:
    """Test read-through/write-through caching"""

    @pytest.fixture
    def policy(self):
        return CachePolicy("laus", 86400)

    @pytest.mark.asyncio
    async def test_miss_produces_and_stores(self, policy):
        redis = FakeRedis()
        pipeline = DatasetPipeline(ResponseCache(redis))
        produce = AsyncMock(return_value={"points": []})

        result = await pipeline.run(policy, {"countyFips": "28163"}, produce)

        assert result.cache_status == CACHE_MISS
        assert result.headers == {"x-cache": "miss"}
        assert result.payload == {"points": []}
        produce.assert_awaited_once()
        assert cache_key("laus", {"countyFips": "28163"}) in redis.store

    @pytest.mark.asyncio
    async def test_hit_never_calls_producer(self, policy):
        pipeline = DatasetPipeline(ResponseCache(FakeRedis()))
        await pipeline.run(policy, {"countyFips": "28163"}, AsyncMock(return_value={"n": 1}))

        produce = AsyncMock(return_value={"n": 2})
        result = await pipeline.run(policy, {"countyFips": "28163"}, produce)

        assert result.cache_status == CACHE_HIT
        assert result.payload == {"n": 1}
        produce.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_write_failure_keeps_payload(self, policy):
        pipeline = DatasetPipeline(ResponseCache(FakeRedis(fail_set=True)))
        result = await pipeline.run(policy, {"q": "x"}, AsyncMock(return_value={"ok": True}))

        assert result.payload == {"ok": True}
        assert result.cache_status == CACHE_MISS

    @pytest.mark.asyncio
    async def test_cache_read_failure_falls_through(self, policy):
        pipeline = DatasetPipeline(ResponseCache(FakeRedis(fail_get=True)))
        produce = AsyncMock(return_value={"ok": True})

        result = await pipeline.run(policy, {"q": "x"}, produce)

        assert result.payload == {"ok": True}
        produce.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_producer_failure_is_not_cached(self, policy):
        redis = FakeRedis()
        pipeline = DatasetPipeline(ResponseCache(redis))
        produce = AsyncMock(side_effect=UpstreamUnavailableError("BLS"))

        with pytest.raises(UpstreamUnavailableError):
            await pipeline.run(policy, {"q": "x"}, produce)
        assert redis.store == {}


class TestFetchAndNormalize:
    @pytest.fixture
    def fetcher(self, no_sleep):
        def build(*script):
            return UpstreamFetcher(FakeSession(*script), sleep=no_sleep)

        return build

    @pytest.mark.asyncio
    async def test_normalizes_payload(self, fetcher):
        request = UpstreamRequest(upstream="HUD", url="https://hud.example")
        value = await fetch_and_normalize(
            fetcher(FakeResponse(200, {"n": 2})), request, RetryPolicy(max_retries=0), lambda p: p["n"] * 2
        )
        assert value == 4

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_unavailable(self, fetcher):
        request = UpstreamRequest(upstream="HUD", url="https://hud.example")
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await fetch_and_normalize(
                fetcher(FakeResponse(503), FakeResponse(503)), request, RetryPolicy(max_retries=1), dict
            )
        assert exc_info.value.upstream == "HUD"

    @pytest.mark.asyncio
    async def test_normalizer_error_body_becomes_unavailable(self, fetcher):
        request = UpstreamRequest(upstream="BLS", url="https://bls.example")
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await fetch_and_normalize(
                fetcher(FakeResponse(200, {"status": "REQUEST_NOT_PROCESSED"})),
                request,
                RetryPolicy(max_retries=0),
                lambda p: normalize_bls_timeseries(p, "X"),
            )
        assert exc_info.value.upstream == "BLS"

    def test_build_retry_policy(self, settings):
        policy = build_retry_policy(settings, 4)
        assert policy.max_retries == 4
        assert policy.initial_delay == 0.2
        assert policy.max_delay == 2.0
        assert policy.retry_client_errors is False
