"""
Community resource submission and moderation.

Submissions are stored unverified and show up only in the moderation
queue. A moderator verification stamps ``verified{by, at, method}`` on the
document. Every create and verify appends an audit entry.
"""

from typing import Any, Callable, Dict, Optional

import structlog

from lifeline_shared.errors import NotFoundError
from lifeline_shared.models import GeoPoint, utc_now_iso

from lifeline_api.src.models.queries import ResourceListQuery
from lifeline_api.src.models.resources import (
    AuditAction,
    CreateResourceRequest,
    CreateResourceResponse,
    ResourceAudit,
    ResourceItem,
    ResourceListResponse,
    Verification,
    VerifyRequest,
    VerifyResourceResponse,
)
from lifeline_api.src.repositories.resource_repo import ResourceRepository

logger = structlog.get_logger(__name__)

QUEUE_SOURCE = "Moderation Queue"
COMMUNITY_SOURCE = "Community"
ANONYMOUS = "anonymous"
DEFAULT_MODERATOR = "moderator@site"


def document_to_item(doc: Dict[str, Any]) -> ResourceItem:
    """Map a stored resource document to its listing shape."""
    loc = doc.get("loc") or {}
    coordinates = loc.get("coordinates") if isinstance(loc, dict) else None
    return ResourceItem(
        id=str(doc["_id"]),
        type=doc["type"],
        name=doc.get("name", ""),
        description=doc.get("description"),
        coords=tuple(coordinates) if coordinates else None,
        address=doc.get("address"),
        contact=doc.get("contact"),
        hours=doc.get("hours"),
        verified=doc.get("verified"),
    )


class ResourceService:
    """Service for community resource operations."""

    def __init__(
        self,
        repo: ResourceRepository,
        max_results: int = 500,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.repo = repo
        self.max_results = max_results
        self.clock = clock

    async def list_resources(self, query: ResourceListQuery) -> dict:
        docs = await self.repo.find(
            bbox=query.bbox,
            resource_type=query.type.value if query.type else None,
            include_unverified=query.queue,
            limit=self.max_results,
        )
        response = ResourceListResponse(
            items=[document_to_item(doc) for doc in docs],
            source=QUEUE_SOURCE if query.queue else COMMUNITY_SOURCE,
        )
        return response.to_wire()

    async def create(self, request: CreateResourceRequest, submitted_by: Optional[str]) -> dict:
        """
        Store a new, unverified resource.

        Args:
            request: Validated submission body
            submitted_by: Submitter email from the request headers, if any

        Returns:
            ``{"id": ..., "status": "queued"}``
        """
        now = self.clock()
        document: Dict[str, Any] = {
            "type": request.type.value,
            "name": request.name,
            "loc": GeoPoint(coordinates=request.coords).model_dump(mode="json"),
            "submittedBy": submitted_by,
            "createdAt": now,
            "updatedAt": now,
        }
        for field in ("description", "address", "hours"):
            value = getattr(request, field)
            if value is not None:
                document[field] = value
        if request.contact is not None:
            document["contact"] = request.contact.model_dump(exclude_none=True)

        resource_id = await self.repo.insert(document)

        audit = ResourceAudit(
            resource_id=resource_id,
            action=AuditAction.CREATE,
            by=submitted_by or ANONYMOUS,
            at=now,
        )
        await self.repo.append_audit(audit.to_wire())

        return CreateResourceResponse(id=resource_id).to_wire()

    async def verify(
        self,
        resource_id: str,
        request: VerifyRequest,
        user_email: Optional[str] = None,
    ) -> dict:
        """
        Mark a resource verified.

        The moderator is ``request.by``, else the caller's email header,
        else a generic moderator identity.

        Raises:
            NotFoundError: If no resource has this id
        """
        who = request.by or user_email or DEFAULT_MODERATOR
        verification = Verification(by=who, at=self.clock(), method=request.method)

        matched = await self.repo.set_verified(
            resource_id, verification.to_wire(), updated_at=verification.at
        )
        if not matched:
            logger.info("resource_verify_missing", resource_id=resource_id)
            raise NotFoundError(f"resource {resource_id} not found")

        audit = ResourceAudit(
            resource_id=resource_id,
            action=AuditAction.VERIFY,
            by=who,
            at=verification.at,
            method=request.method,
            notes=request.notes,
        )
        await self.repo.append_audit(audit.to_wire())
        logger.info("resource_verified", resource_id=resource_id, method=request.method.value)

        return VerifyResourceResponse(id=resource_id, verified=verification).to_wire()
