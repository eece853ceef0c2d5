"""County broadband availability summaries from the ingest worker's collection."""

import structlog

from lifeline_shared.errors import NotFoundError, UnsupportedGeoError

from lifeline_api.src.models.queries import BroadbandQuery
from lifeline_api.src.models.responses import BroadbandSpeed, BroadbandSummaryResponse
from lifeline_api.src.repositories.broadband_repo import BroadbandRepository

logger = structlog.get_logger(__name__)

DEFAULT_SOURCE = "FCC NBM CSV"


class BroadbandService:
    def __init__(self, repo: BroadbandRepository):
        self.repo = repo

    async def summary(self, query: BroadbandQuery) -> dict:
        """
        Latest summary for a county.

        Raises:
            UnsupportedGeoError: For tract-level requests
            NotFoundError: If no summary has been ingested for the county
        """
        if query.geo != "county":
            raise UnsupportedGeoError("only county summaries are available")

        doc = await self.repo.latest_for_fips(query.fips)
        if doc is None:
            logger.info("broadband_summary_missing", fips=query.fips)
            raise NotFoundError(f"no broadband summary for {query.fips}")

        as_of = str(doc.get("asOf", ""))
        response = BroadbandSummaryResponse(
            provider_count=int(doc.get("providerCount", 0)),
            speed=BroadbandSpeed.model_validate(doc.get("speed") or {}),
            tech=list(doc.get("tech") or []),
            as_of=as_of,
            source=doc.get("source") or DEFAULT_SOURCE,
            last_updated=str(doc.get("fetchedAt") or doc.get("updatedAt") or ""),
            data_vintage=as_of[:7],
        )
        return response.to_wire()
