"""
Redis-backed response cache.

Stores serialized JSON responses under namespaced keys with a per-dataset
TTL. The cache is strictly best-effort: every Redis failure is logged,
counted, and converted into a miss (reads) or a no-op (writes). A cache
built without a client is disabled and always misses.
"""

import json
import random
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from lifeline_shared.errors import CacheError
from lifeline_shared.metrics import CivicMetrics

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CachePolicy:
    """TTL policy for one dataset.

    ``jitter_seconds`` spreads expiry of entries written at the same time
    over ``[ttl_seconds, ttl_seconds + jitter_seconds)``.
    """
    dataset: str
    ttl_seconds: int
    jitter_seconds: int = 0

    def next_ttl(self, rng: random.Random) -> int:
        if self.jitter_seconds <= 0:
            return self.ttl_seconds
        return self.ttl_seconds + rng.randrange(self.jitter_seconds)


class ResponseCache:
    """Read-through/write-through JSON cache over an async Redis client."""

    def __init__(
        self,
        client: Optional[Redis],
        metrics: Optional[CivicMetrics] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the cache.

        Args:
            client: redis.asyncio client, or None to disable caching
            metrics: Metrics sink for hit/miss/error counters
            rng: Random source for TTL jitter
        """
        self.client = client
        self.metrics = metrics
        self.rng = rng or random.Random()

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def get(self, key: str, dataset: str) -> Optional[Any]:
        """Return the cached payload, or None on miss, disabled cache or error."""
        if self.client is None:
            return None

        try:
            raw = await self._read(key)
        except CacheError as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            self._count_error(dataset, "get")
            return None

        if raw is None:
            self._count_lookup(dataset, "miss")
            return None

        self._count_lookup(dataset, "hit")
        logger.debug("cache_hit", key=key)
        return raw

    async def set(self, key: str, payload: Any, policy: CachePolicy) -> bool:
        """Store a payload. Returns False (and logs) on failure instead of raising."""
        if self.client is None:
            return False

        ttl = policy.next_ttl(self.rng)
        try:
            await self._write(key, payload, ttl)
        except CacheError as e:
            logger.warning("cache_set_failed", key=key, ttl=ttl, error=str(e))
            self._count_error(policy.dataset, "set")
            return False

        logger.debug("cache_set", key=key, ttl=ttl)
        return True

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.warning("cache_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()

    async def _read(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise CacheError(f"read failed: {e}")
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise CacheError(f"corrupt entry: {e}")

    async def _write(self, key: str, payload: Any, ttl: int) -> None:
        try:
            body = json.dumps(payload, separators=(",", ":"))
            await self.client.set(key, body, ex=ttl)
        except (RedisError, OSError, TypeError, ValueError) as e:
            raise CacheError(f"write failed: {e}")

    def _count_lookup(self, dataset: str, result: str) -> None:
        if self.metrics:
            self.metrics.cache_lookups.labels(dataset=dataset, result=result).inc()

    def _count_error(self, dataset: str, operation: str) -> None:
        if self.metrics:
            self.metrics.cache_errors.labels(dataset=dataset, operation=operation).inc()
