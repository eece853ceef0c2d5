"""
Community resource repository.

Provides async operations on the ``resources`` collection and its
append-only ``resourceAudits`` trail using pymongo's asyncio client.
Resource locations are GeoJSON points. Bbox searches use a flat
``$geoWithin`` ``$box``, so box edges follow lines of latitude.
"""

from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.asynchronous.database import AsyncDatabase

from lifeline_shared.geo import Bbox

logger = structlog.get_logger(__name__)

RESOURCES_COLLECTION = "resources"
AUDITS_COLLECTION = "resourceAudits"


def parse_object_id(resource_id: Optional[str]) -> Optional[ObjectId]:
    """Return the ObjectId for a hex id, or None if it is not one."""
    if not isinstance(resource_id, str) or not resource_id:
        return None
    try:
        return ObjectId(resource_id)
    except (InvalidId, TypeError):
        return None


class ResourceRepository:
    """Repository for community resource documents."""

    def __init__(self, db: AsyncDatabase):
        """
        Initialize resource repository.

        Args:
            db: pymongo async database handle
        """
        self.resources = db[RESOURCES_COLLECTION]
        self.audits = db[AUDITS_COLLECTION]

    async def find(
        self,
        bbox: Optional[Bbox] = None,
        resource_type: Optional[str] = None,
        include_unverified: bool = False,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        List resources.

        Args:
            bbox: Only resources whose location falls inside this box
            resource_type: Only resources of this type
            include_unverified: Return everything, including the moderation queue
            limit: Maximum number of documents

        Returns:
            Raw documents
        """
        query: Dict[str, Any] = {}
        if not include_unverified:
            query["verified"] = {"$exists": True}
        if resource_type:
            query["type"] = resource_type
        if bbox is not None:
            min_lon, min_lat, max_lon, max_lat = bbox
            query["loc"] = {"$geoWithin": {"$box": [[min_lon, min_lat], [max_lon, max_lat]]}}

        cursor = self.resources.find(query).limit(limit)
        docs = await cursor.to_list(length=limit)

        logger.debug("resources_listed", count=len(docs), queue=include_unverified)
        return docs

    async def insert(self, document: Dict[str, Any]) -> str:
        """Insert a resource document and return its id as a string."""
        result = await self.resources.insert_one(document)
        resource_id = str(result.inserted_id)
        logger.info("resource_created", resource_id=resource_id, type=document.get("type"))
        return resource_id

    async def set_verified(
        self,
        resource_id: str,
        verification: Dict[str, Any],
        updated_at: str,
    ) -> bool:
        """
        Record a moderator verification.

        Returns:
            False if no resource has this id (including malformed ids)
        """
        object_id = parse_object_id(resource_id)
        if object_id is None:
            return False

        result = await self.resources.update_one(
            {"_id": object_id},
            {"$set": {"verified": verification, "updatedAt": updated_at}},
        )
        return result.matched_count > 0

    async def append_audit(self, audit: Dict[str, Any]) -> None:
        await self.audits.insert_one(audit)
        logger.info(
            "resource_audit_recorded",
            resource_id=audit.get("resourceId"),
            action=audit.get("action"),
        )
