"""
Unit tests for community resource persistence and moderation.

Tests the Mongo query construction in ``ResourceRepository`` against mocked
collections, and the submission/verification flow of ``ResourceService``.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from bson import ObjectId

from lifeline_shared.errors import NotFoundError

from lifeline_api.src.models.queries import ResourceListQuery
from lifeline_api.src.models.resources import CreateResourceRequest, VerifyRequest
from lifeline_api.src.repositories.broadband_repo import BroadbandRepository
from lifeline_api.src.repositories.resource_repo import ResourceRepository, parse_object_id
from lifeline_api.src.services.resources import ResourceService, document_to_item

from tests.conftest import InMemoryResourceRepository

FIXED_NOW = "2025-07-01T12:00:00.000Z"


class TestResourceRepository:
    """Test Mongo queries issued by the repository"""

    @pytest.fixture
    def collections(self):
        cursor = Mock()
        cursor.limit.return_value = cursor
        cursor.to_list = AsyncMock(return_value=[{"_id": "a"}])

        resources = Mock()
        resources.find.return_value = cursor
        resources.insert_one = AsyncMock(return_value=Mock(inserted_id=ObjectId("64b7f0c2a1b2c3d4e5f60718")))
        resources.update_one = AsyncMock(return_value=Mock(matched_count=1))

        audits = Mock()
        audits.insert_one = AsyncMock()
        return {"resources": resources, "resourceAudits": audits, "cursor": cursor}

    @pytest.fixture
    def repo(self, collections):
        return ResourceRepository(collections)

    @pytest.mark.asyncio
    async def test_find_verified_only_by_default(self, repo, collections):
        docs = await repo.find(limit=50)

        assert docs == [{"_id": "a"}]
        collections["resources"].find.assert_called_once_with({"verified": {"$exists": True}})
        collections["cursor"].limit.assert_called_once_with(50)

    @pytest.mark.asyncio
    async def test_find_queue_with_filters(self, repo, collections):
        await repo.find(bbox=(0, 0, 1, 1), resource_type="wifi", include_unverified=True)

        query = collections["resources"].find.call_args[0][0]
        assert "verified" not in query
        assert query["type"] == "wifi"
        assert query["loc"] == {"$geoWithin": {"$box": [[0, 0], [1, 1]]}}

    @pytest.mark.asyncio
    async def test_find_world_bbox_is_flat_box(self, repo, collections):
        await repo.find(bbox=(-180.0, -90.0, 180.0, 90.0))

        query = collections["resources"].find.call_args[0][0]
        assert query["loc"]["$geoWithin"] == {"$box": [[-180.0, -90.0], [180.0, 90.0]]}

    @pytest.mark.asyncio
    async def test_insert_returns_string_id(self, repo):
        assert await repo.insert({"type": "wifi"}) == "64b7f0c2a1b2c3d4e5f60718"

    @pytest.mark.asyncio
    async def test_set_verified(self, repo, collections):
        ok = await repo.set_verified("64b7f0c2a1b2c3d4e5f60718", {"by": "m"}, FIXED_NOW)

        assert ok is True
        filter_, update = collections["resources"].update_one.call_args[0]
        assert filter_ == {"_id": ObjectId("64b7f0c2a1b2c3d4e5f60718")}
        assert update == {"$set": {"verified": {"by": "m"}, "updatedAt": FIXED_NOW}}

    @pytest.mark.asyncio
    async def test_set_verified_invalid_id(self, repo, collections):
        assert await repo.set_verified("not-an-id", {}, FIXED_NOW) is False
        collections["resources"].update_one.assert_not_called()

    def test_parse_object_id(self):
        assert parse_object_id("64b7f0c2a1b2c3d4e5f60718") == ObjectId("64b7f0c2a1b2c3d4e5f60718")
        assert parse_object_id("zzz") is None
        assert parse_object_id(None) is None
        assert parse_object_id("") is None


class TestBroadbandRepository:
    @pytest.mark.asyncio
    async def test_latest_sorted_by_as_of(self):
        collection = Mock()
        collection.find_one = AsyncMock(return_value={"fips": "28163"})
        repo = BroadbandRepository({"fccBroadband": collection})

        assert await repo.latest_for_fips("28163") == {"fips": "28163"}
        args, kwargs = collection.find_one.call_args
        assert args[0] == {"fips": "28163"}
        assert kwargs["sort"] == [("asOf", -1)]


class TestResourceService:
    """Test submission, listing and verification"""

    @pytest.fixture
    def repo(self):
        return InMemoryResourceRepository()

    @pytest.fixture
    def service(self, repo):
        return ResourceService(repo, max_results=500, clock=lambda: FIXED_NOW)

    @pytest.fixture
    def submission(self):
        return CreateResourceRequest.model_validate(
            {
                "type": "wifi",
                "name": "Library Wi-Fi",
                "coords": [-90.405, 32.855],
                "contact": {"phone": "662-555-0100"},
                "hours": "9-5",
            }
        )

    @pytest.mark.asyncio
    async def test_create_queues_resource(self, service, repo, submission):
        created = await service.create(submission, submitted_by="neighbor@example.org")

        assert created["status"] == "queued"
        doc = repo.documents[0]
        assert str(doc["_id"]) == created["id"]
        assert doc["loc"] == {"type": "Point", "coordinates": [-90.405, 32.855]}
        assert doc["contact"] == {"phone": "662-555-0100"}
        assert doc["createdAt"] == FIXED_NOW
        assert "verified" not in doc
        assert "description" not in doc
        assert repo.audits == [
            {"resourceId": created["id"], "action": "create", "by": "neighbor@example.org", "at": FIXED_NOW}
        ]

    @pytest.mark.asyncio
    async def test_anonymous_submission(self, service, repo, submission):
        await service.create(submission, submitted_by=None)
        assert repo.audits[0]["by"] == "anonymous"

    @pytest.mark.asyncio
    async def test_unverified_hidden_from_public_list(self, service, submission):
        await service.create(submission, submitted_by=None)

        public = await service.list_resources(ResourceListQuery())
        queue = await service.list_resources(ResourceListQuery(queue=True))

        assert public["items"] == []
        assert public["source"] == "Community"
        assert len(queue["items"]) == 1
        assert queue["source"] == "Moderation Queue"

    @pytest.mark.asyncio
    async def test_verify(self, service, repo, submission):
        created = await service.create(submission, submitted_by=None)

        verified = await service.verify(created["id"], VerifyRequest(method="phone", notes="called"))

        assert verified == {
            "id": created["id"],
            "verified": {"by": "moderator@site", "at": FIXED_NOW, "method": "phone"},
        }
        assert repo.documents[0]["verified"]["method"] == "phone"
        assert repo.audits[-1]["action"] == "verify"
        assert repo.audits[-1]["notes"] == "called"

        listed = await service.list_resources(ResourceListQuery())
        assert listed["items"][0]["verified"]["by"] == "moderator@site"

    @pytest.mark.asyncio
    async def test_verify_moderator_precedence(self, service, submission):
        created = await service.create(submission, submitted_by=None)

        by_header = await service.verify(created["id"], VerifyRequest(method="site"), user_email="mod@x.org")
        by_body = await service.verify(created["id"], VerifyRequest(method="site", by="lead@x.org"), user_email="mod@x.org")

        assert by_header["verified"]["by"] == "mod@x.org"
        assert by_body["verified"]["by"] == "lead@x.org"

    @pytest.mark.asyncio
    async def test_verify_unknown_id(self, service, repo):
        with pytest.raises(NotFoundError):
            await service.verify(str(ObjectId()), VerifyRequest(method="email"))
        with pytest.raises(NotFoundError):
            await service.verify("bogus", VerifyRequest(method="email"))
        assert repo.audits == []

    @pytest.mark.asyncio
    async def test_list_passes_limit_and_type(self, service, repo):
        await service.list_resources(ResourceListQuery(type="clinic"))
        assert repo.find_calls[-1]["resource_type"] == "clinic"
        assert repo.find_calls[-1]["limit"] == 500

    def test_document_to_item(self):
        item = document_to_item(
            {
                "_id": ObjectId("64b7f0c2a1b2c3d4e5f60718"),
                "type": "meal_site",
                "name": "Soup Kitchen",
                "loc": {"type": "Point", "coordinates": [-90.1, 32.3]},
                "submittedBy": "x@y.z",
            }
        )
        wire = item.to_wire()
        assert wire == {
            "id": "64b7f0c2a1b2c3d4e5f60718",
            "type": "meal_site",
            "name": "Soup Kitchen",
            "coords": [-90.1, 32.3],
        }
