"""Read access to county broadband summaries written by the FCC ingest worker."""

from typing import Any, Dict, Optional

import structlog
from pymongo import DESCENDING
from pymongo.asynchronous.database import AsyncDatabase

logger = structlog.get_logger(__name__)

BROADBAND_COLLECTION = "fccBroadband"


class BroadbandRepository:
    def __init__(self, db: AsyncDatabase):
        self.collection = db[BROADBAND_COLLECTION]

    async def latest_for_fips(self, fips: str) -> Optional[Dict[str, Any]]:
        """Most recent summary for ``fips`` by ``asOf``, or None."""
        return await self.collection.find_one({"fips": fips}, sort=[("asOf", DESCENDING)])
