"""
Shared test fixtures.

Upstream HTTP is replaced by ``FakeSession``, a scripted stand-in for
``aiohttp.ClientSession`` that records every request. Redis is replaced by
``FakeRedis`` and MongoDB by in-memory repositories, so the full FastAPI
app can be exercised through ``TestClient`` without any network access.
"""

import json
from urllib.parse import parse_qs, urlsplit
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry
from redis.exceptions import ConnectionError as RedisConnectionError

from lifeline_shared.cache import ResponseCache
from lifeline_shared.metrics import CivicMetrics

from lifeline_api.src.config import Settings
from lifeline_api.src.main import create_app
from lifeline_api.src.repositories.resource_repo import parse_object_id
from lifeline_api.src.services.container import build_services


# ============================================================================
# Upstream samples
# ============================================================================

SNAP_SAMPLE = {
    "features": [
        {
            "attributes": {
                "Store_Name": "ACME MARKET",
                "Street_Address": "123 Main St",
                "City": "Yazoo City",
                "State": "MS",
                "ZIP_Code": "39194",
                "Store_Type": "Supermarket",
                "Phone_Number": None,
                "HOURS": None,
            },
            "geometry": {"x": -90.405, "y": 32.889},
        },
    ],
}

BLS_SAMPLE = {
    "status": "REQUEST_SUCCEEDED",
    "Results": {
        "series": [
            {
                "seriesID": "LAUCN281630000000003",
                "data": [
                    {"year": "2025", "period": "M02", "periodName": "February", "value": "9.1"},
                    {"year": "2025", "period": "M01", "periodName": "January", "value": "8.9"},
                    {"year": "2024", "period": "M13", "periodName": "Annual", "value": "8.2"},
                    {"year": "2024", "period": "M12", "periodName": "December", "value": "8.7"},
                ],
            },
        ],
    },
}


def query_params(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


# ============================================================================
# Fake aiohttp
# ============================================================================


class FakeContent:
    def __init__(self, data: bytes):
        self.data = data

    async def iter_chunked(self, size: int):
        for start in range(0, len(self.data), size):
            yield self.data[start:start + size]


class FakeResponse:
    """Scripted upstream answer usable as ``async with session.request(...)``."""

    def __init__(self, status: int = 200, body: Any = None, text: Optional[str] = None, raw: bytes = b""):
        self.status = status
        self.body = body
        self.text = text
        self.content = FakeContent(raw)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type=None):
        if self.text is not None:
            return json.loads(self.text)
        return self.body


class RaisingResponse:
    """Context manager that fails on entry, like a refused connection."""

    def __init__(self, exc: BaseException):
        self.exc = exc

    async def __aenter__(self):
        raise self.exc

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Replays scripted responses in order and records each call."""

    def __init__(self, *script: Any):
        self.script: List[Any] = list(script)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def queue(self, *script: Any) -> None:
        self.script.extend(script)

    def request(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.script:
            raise AssertionError(f"unexpected upstream call: {method} {url}")
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            return RaisingResponse(step)
        return step

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    async def close(self):
        self.closed = True


# ============================================================================
# Fake Redis
# ============================================================================


class FakeRedis:
    """Dict-backed subset of ``redis.asyncio.Redis`` with injectable failures."""

    def __init__(self, fail_get: bool = False, fail_set: bool = False):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.closed = False

    async def get(self, key: str) -> Optional[str]:
        if self.fail_get:
            raise RedisConnectionError("redis down")
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        if self.fail_set:
            raise RedisConnectionError("redis down")
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def ping(self) -> bool:
        if self.fail_get:
            raise RedisConnectionError("redis down")
        return True

    async def aclose(self) -> None:
        self.closed = True


# ============================================================================
# In-memory repositories
# ============================================================================


class InMemoryResourceRepository:
    """Same interface as ``ResourceRepository``, backed by lists."""

    def __init__(self):
        self.documents: List[Dict[str, Any]] = []
        self.audits: List[Dict[str, Any]] = []
        self.find_calls: List[Dict[str, Any]] = []

    async def find(self, bbox=None, resource_type=None, include_unverified=False, limit=500):
        self.find_calls.append(
            {
                "bbox": bbox,
                "resource_type": resource_type,
                "include_unverified": include_unverified,
                "limit": limit,
            }
        )
        docs = []
        for doc in self.documents:
            if not include_unverified and "verified" not in doc:
                continue
            if resource_type and doc["type"] != resource_type:
                continue
            if bbox is not None:
                lon, lat = doc["loc"]["coordinates"]
                if not (bbox[0] <= lon <= bbox[2] and bbox[1] <= lat <= bbox[3]):
                    continue
            docs.append(doc)
        return docs[:limit]

    async def insert(self, document):
        document = dict(document, _id=ObjectId())
        self.documents.append(document)
        return str(document["_id"])

    async def set_verified(self, resource_id, verification, updated_at):
        object_id = parse_object_id(resource_id)
        for doc in self.documents:
            if doc["_id"] == object_id:
                doc["verified"] = verification
                doc["updatedAt"] = updated_at
                return True
        return False

    async def append_audit(self, audit):
        self.audits.append(audit)


class InMemoryBroadbandRepository:
    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        self.documents = documents or []

    async def latest_for_fips(self, fips):
        matches = [doc for doc in self.documents if doc["fips"] == fips]
        if not matches:
            return None
        return max(matches, key=lambda doc: doc["asOf"])


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def no_sleep(sleeps):
    """Backoff sleep that records the delay and returns immediately."""

    async def sleep(delay: float) -> None:
        sleeps.append(delay)

    return sleep


@pytest.fixture
def metrics() -> CivicMetrics:
    return CivicMetrics(registry=CollectorRegistry())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        log_format="text",
        retry_jitter_range=0.0,
        snap_cache_jitter=0,
        redis_url=None,
        mongo_uri=None,
        moderator_api_key=None,
        hud_token=None,
        bls_api_key=None,
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def resource_repo() -> InMemoryResourceRepository:
    return InMemoryResourceRepository()


@pytest.fixture
def broadband_repo() -> InMemoryBroadbandRepository:
    return InMemoryBroadbandRepository()


@pytest.fixture
def services(settings, session, redis, metrics, resource_repo, broadband_repo, no_sleep):
    cache = ResponseCache(redis, metrics=metrics)
    return build_services(
        settings,
        session,
        cache,
        metrics,
        resource_repo=resource_repo,
        broadband_repo=broadband_repo,
        sleep=no_sleep,
    )


@pytest.fixture
def client(settings, services):
    app = create_app(settings=settings, services=services)
    with TestClient(app) as test_client:
        yield test_client
