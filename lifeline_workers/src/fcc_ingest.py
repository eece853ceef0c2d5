"""
FCC National Broadband Map ingest.

Downloads a state availability CSV, aggregates it per county and upserts
one summary document per county into ``fccBroadband``:

    {
        "_id": "28163:2025-06-30",
        "geoType": "county",
        "fips": "28163",
        "asOf": "2025-06-30",
        "providerCount": 7,
        "speed": {"25_3": true, "100_20": true, "1000_100": false},
        "tech": ["Fiber", "Cable"],
        "source": "FCC NBM CSV",
        ...
    }

The CSV layout has changed across FCC releases, so every column is read
through a list of candidate names.
"""

import asyncio
import csv
import re
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import aiohttp
import structlog
from pymongo import UpdateOne
from pymongo.errors import PyMongoError
from pymongo.asynchronous.collection import AsyncCollection

from lifeline_shared.errors import CivicDataError
from lifeline_shared.models import utc_now_iso

logger = structlog.get_logger(__name__)

SOURCE = "FCC NBM CSV"
COLLECTION = "fccBroadband"

AS_OF_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
STATE_PATTERN = re.compile(r"^[A-Za-z]{2}$")
FIPS_PATTERN = re.compile(r"^\d{5}$")

FIPS_COLUMNS = ("county_fips", "county", "FIPS", "fips")
PROVIDER_COLUMNS = ("provider_id", "provider", "FRN", "frn", "provider_name")
DOWN_COLUMNS = ("max_advertised_down", "down", "max_down")
UP_COLUMNS = ("max_advertised_up", "up", "max_up")
TECH_COLUMNS = ("technology", "tech", "technology_code")

# (name, min down Mbps, min up Mbps, fallback flag columns)
SPEED_TIERS: Tuple[Tuple[str, float, float, Tuple[str, ...]], ...] = (
    ("25_3", 25, 3, ("25_3", "tier_25_3")),
    ("100_20", 100, 20, ("100_20", "tier_100_20")),
    ("1000_100", 1000, 100, ("1000_100", "gigabit")),
)

TRUE_FLAGS = {"1", "true", "t", "yes", "y"}

TECH_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"fiber|ftth|pon"), "Fiber"),
    (re.compile(r"cable|coax"), "Cable"),
    (re.compile(r"dsl"), "DSL"),
    (re.compile(r"fixed|wireless"), "Fixed Wireless"),
    (re.compile(r"satellite"), "Satellite"),
)


class IngestError(CivicDataError):
    """Ingest could not run (bad arguments, missing configuration, failed download)."""

    code = "INGEST_FAILED"


@dataclass
class CountyAggregate:
    providers: Set[str] = field(default_factory=set)
    speed: Dict[str, bool] = field(default_factory=lambda: {name: False for name, *_ in SPEED_TIERS})
    tech: List[str] = field(default_factory=list)

    def add_tech(self, name: Optional[str]) -> None:
        if name and name not in self.tech:
            self.tech.append(name)


@dataclass
class IngestSummary:
    url: str
    rows: int
    counties: int
    upserts: int
    bytes_downloaded: int
    seconds: float


# ============================================================================
# Arguments
# ============================================================================


def validate_args(state: str, as_of: str) -> Tuple[str, str]:
    """Normalize the state code to upper case and check ``as_of`` is YYYY-MM-DD."""
    if not STATE_PATTERN.match(state or ""):
        raise IngestError(f"state must be a two-letter code, got: {state!r}")
    if not AS_OF_PATTERN.match(as_of or ""):
        raise IngestError(f"as_of must be YYYY-MM-DD, got: {as_of!r}")
    return state.upper(), as_of


def yyyymm(as_of: str) -> str:
    return as_of.replace("-", "")[:6]


def build_csv_url(template: Optional[str], state: str, as_of: str, url: Optional[str] = None) -> str:
    """
    Resolve the download URL.

    An explicit ``url`` wins. Otherwise ``template`` must be set and its
    ``{YYYYMM}`` and ``{STATE}`` placeholders are substituted.

    Raises:
        IngestError: If neither is available
    """
    if url:
        return url
    if not template:
        raise IngestError("FCC_CSV_URL_TEMPLATE is required unless --url is given")
    return template.replace("{YYYYMM}", yyyymm(as_of)).replace("{STATE}", state)


# ============================================================================
# Row parsing
# ============================================================================


def _first(record: Mapping[str, Any], columns: Sequence[str]) -> str:
    for column in columns:
        value = record.get(column)
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return ""


def _number(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _flag(value: str) -> bool:
    return value.strip().lower() in TRUE_FLAGS


def map_tech(raw: str) -> Optional[str]:
    """
    Map an FCC technology label or code to a display name.

    Unrecognized non-empty labels are kept as-is; empty input maps to None.
    """
    lowered = (raw or "").strip().lower()
    if not lowered:
        return None
    for pattern, name in TECH_PATTERNS:
        if pattern.search(lowered):
            return name
    return raw.strip()


def county_fips(record: Mapping[str, Any]) -> Optional[str]:
    """Five-digit county FIPS, zero-padded; None for anything else."""
    raw = _first(record, FIPS_COLUMNS)
    if not raw:
        return None
    fips = raw.zfill(5)
    return fips if FIPS_PATTERN.match(fips) else None


def speed_tiers(record: Mapping[str, Any]) -> Dict[str, bool]:
    """
    Which speed tiers a row offers.

    Uses the advertised down/up columns when both are numeric, else the
    per-tier flag columns.
    """
    down = _number(_first(record, DOWN_COLUMNS))
    up = _number(_first(record, UP_COLUMNS))
    tiers: Dict[str, bool] = {}
    for name, min_down, min_up, flag_columns in SPEED_TIERS:
        if down is not None and up is not None:
            tiers[name] = down >= min_down and up >= min_up
        else:
            tiers[name] = _flag(_first(record, flag_columns))
    return tiers


def aggregate_rows(rows: Iterable[Mapping[str, Any]]) -> Tuple[Dict[str, CountyAggregate], int]:
    """
    Aggregate CSV rows per county.

    Returns:
        (aggregates by county FIPS, number of rows read)
    """
    counties: Dict[str, CountyAggregate] = {}
    count = 0
    for record in rows:
        count += 1
        fips = county_fips(record)
        if fips is None:
            continue

        aggregate = counties.setdefault(fips, CountyAggregate())
        # rows without a provider column still count as a distinct provider
        aggregate.providers.add(_first(record, PROVIDER_COLUMNS) or f"row-{count}")
        for name, offered in speed_tiers(record).items():
            aggregate.speed[name] = aggregate.speed[name] or offered
        aggregate.add_tech(map_tech(_first(record, TECH_COLUMNS)))

    return counties, count


def read_csv_rows(path: Path) -> Iterator[Dict[str, str]]:
    """Stream rows from a CSV file with a header line. A UTF-8 BOM is ignored."""
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        for row in csv.DictReader(handle):
            if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
                continue
            yield row


# ============================================================================
# Documents
# ============================================================================


def build_documents(
    counties: Mapping[str, CountyAggregate],
    as_of: str,
    source_url: str,
    fetched_at: Optional[str] = None,
) -> List[Dict[str, Any]]:
    fetched_at = fetched_at or utc_now_iso()
    documents = []
    for fips in sorted(counties):
        aggregate = counties[fips]
        documents.append(
            {
                "_id": f"{fips}:{as_of}",
                "geoType": "county",
                "fips": fips,
                "asOf": as_of,
                "providerCount": len(aggregate.providers),
                "speed": dict(aggregate.speed),
                "tech": list(aggregate.tech),
                "source": SOURCE,
                "sourceUrl": source_url,
                "fetchedAt": fetched_at,
                "updatedAt": fetched_at,
            }
        )
    return documents


async def upsert_documents(collection: AsyncCollection, documents: List[Dict[str, Any]]) -> int:
    """
    Upsert summaries by ``_id``. ``createdAt`` is only written on insert.

    Raises:
        IngestError: If MongoDB is unreachable or rejects the write
    """
    if not documents:
        return 0
    operations = []
    for doc in documents:
        fields = {k: v for k, v in doc.items() if k != "_id"}
        operations.append(
            UpdateOne(
                {"_id": doc["_id"]},
                {"$set": fields, "$setOnInsert": {"createdAt": doc["fetchedAt"]}},
                upsert=True,
            )
        )
    try:
        result = await collection.bulk_write(operations, ordered=False)
    except PyMongoError as e:
        raise IngestError(f"upsert failed: {e}")
    return result.upserted_count + result.matched_count


# ============================================================================
# Download
# ============================================================================


async def download_csv(
    session: aiohttp.ClientSession,
    url: str,
    destination: Path,
    timeout_seconds: float = 600.0,
    chunk_size: int = 64 * 1024,
) -> int:
    """
    Stream ``url`` to ``destination``.

    Returns:
        Number of bytes written

    Raises:
        IngestError: On a non-200 status, a transport failure or a timeout
    """
    written = 0
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout_seconds)) as response:
            if response.status != 200:
                raise IngestError(f"download failed: HTTP {response.status}")
            with destination.open("wb") as handle:
                async for chunk in response.content.iter_chunked(chunk_size):
                    handle.write(chunk)
                    written += len(chunk)
    except asyncio.TimeoutError:
        raise IngestError(f"download timed out after {timeout_seconds:g}s")
    except aiohttp.ClientError as e:
        raise IngestError(f"download failed: {e}")

    logger.info("fcc_csv_downloaded", bytes=written, path=str(destination))
    return written


async def run_ingest(
    session: aiohttp.ClientSession,
    collection: AsyncCollection,
    state: str,
    as_of: str,
    url: str,
    timeout_seconds: float = 600.0,
    chunk_size: int = 64 * 1024,
) -> IngestSummary:
    """Download, aggregate and upsert one state release."""
    started = time.monotonic()
    logger.info("fcc_ingest_started", url=url, state=state, as_of=as_of)

    with tempfile.TemporaryDirectory(prefix="fcc_") as workdir:
        path = Path(workdir) / f"fcc_{state}_{yyyymm(as_of)}.csv"
        size = await download_csv(session, url, path, timeout_seconds, chunk_size)
        counties, rows = aggregate_rows(read_csv_rows(path))

    documents = build_documents(counties, as_of, url)
    upserts = await upsert_documents(collection, documents)

    summary = IngestSummary(
        url=url,
        rows=rows,
        counties=len(counties),
        upserts=upserts,
        bytes_downloaded=size,
        seconds=round(time.monotonic() - started, 3),
    )
    logger.info(
        "fcc_ingest_completed",
        rows=summary.rows,
        counties=summary.counties,
        upserts=summary.upserts,
        bytes=summary.bytes_downloaded,
        seconds=summary.seconds,
    )
    return summary
