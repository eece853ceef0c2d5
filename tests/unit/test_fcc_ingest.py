"""
Unit tests for the FCC broadband CSV ingest.

Covers URL templating, per-county aggregation across the CSV layouts the
FCC has published, document construction and the upsert batch.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest
from pymongo import UpdateOne
from pymongo.errors import ServerSelectionTimeoutError

from lifeline_workers.src.fcc_ingest import (
    IngestError,
    aggregate_rows,
    build_csv_url,
    build_documents,
    county_fips,
    download_csv,
    map_tech,
    read_csv_rows,
    run_ingest,
    speed_tiers,
    upsert_documents,
    validate_args,
    yyyymm,
)

from tests.conftest import FakeResponse, FakeSession

SAMPLE_CSV = (
    "\ufeffprovider_id,county_fips,technology,max_advertised_down,max_advertised_up\n"
    "130077,28163,Fiber to the Premises,1000,1000\n"
    "130077,28163,Fiber to the Premises,1000,1000\n"
    "290111,28163,Cable,300,20\n"
    "131425,28163,Satellite,100,3\n"
    "290111,1001,DSL,10,1\n"
    ",,,,\n"
    "999,not-a-fips,DSL,10,1\n"
)


class TestArguments:
    def test_validate_args(self):
        assert validate_args("ms", "2025-06-30") == ("MS", "2025-06-30")

    @pytest.mark.parametrize("state,as_of", [("MSS", "2025-06-30"), ("M1", "2025-06-30"), ("MS", "2025-6-30"), ("MS", "")])
    def test_invalid_args(self, state, as_of):
        with pytest.raises(IngestError):
            validate_args(state, as_of)

    def test_yyyymm(self):
        assert yyyymm("2025-06-30") == "202506"

    def test_template_substitution(self):
        template = "https://fcc.example/{YYYYMM}/bdc_{STATE}_fixed.csv"
        assert build_csv_url(template, "MS", "2025-06-30") == "https://fcc.example/202506/bdc_MS_fixed.csv"

    def test_explicit_url_wins(self):
        assert build_csv_url("https://t/{STATE}", "MS", "2025-06-30", url="https://x/y.csv") == "https://x/y.csv"

    def test_missing_template_and_url(self):
        with pytest.raises(IngestError):
            build_csv_url(None, "MS", "2025-06-30")


class TestRowParsing:
    """Test column fallbacks and tier detection"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Fiber to the Premises", "Fiber"),
            ("FTTH", "Fiber"),
            ("GPON", "Fiber"),
            ("Cable Modem - DOCSIS 3.1", "Cable"),
            ("coax", "Cable"),
            ("ADSL2", "DSL"),
            ("Licensed Fixed Wireless", "Fixed Wireless"),
            ("GSO Satellite", "Satellite"),
            ("Copper", "Copper"),
            ("", None),
        ],
    )
    def test_map_tech(self, raw, expected):
        assert map_tech(raw) == expected

    def test_county_fips_padding(self):
        assert county_fips({"county_fips": "1001"}) == "01001"
        assert county_fips({"FIPS": "28163"}) == "28163"
        assert county_fips({"county": "281630001"}) is None
        assert county_fips({}) is None

    def test_speed_from_numbers(self):
        assert speed_tiers({"max_advertised_down": "100", "max_advertised_up": "20"}) == {
            "25_3": True,
            "100_20": True,
            "1000_100": False,
        }

    def test_speed_from_flag_columns(self):
        tiers = speed_tiers({"25_3": "yes", "100_20": "0", "gigabit": "T"})
        assert tiers == {"25_3": True, "100_20": False, "1000_100": True}

    def test_aggregate(self):
        rows = [
            {"provider_id": "1", "county_fips": "28163", "technology": "Cable", "down": "300", "up": "20"},
            {"provider_id": "1", "county_fips": "28163", "technology": "Cable", "down": "300", "up": "20"},
            {"provider_id": "2", "county_fips": "28163", "technology": "Fiber", "down": "1000", "up": "1000"},
            {"county_fips": "28163", "technology": "DSL"},
            {"county_fips": "", "technology": "DSL"},
        ]
        counties, count = aggregate_rows(rows)

        assert count == 5
        assert list(counties) == ["28163"]
        aggregate = counties["28163"]
        assert len(aggregate.providers) == 3
        assert aggregate.speed == {"25_3": True, "100_20": True, "1000_100": True}
        assert aggregate.tech == ["Cable", "Fiber", "DSL"]

    def test_read_csv_skips_blank_rows_and_bom(self, tmp_path):
        path = tmp_path / "fcc.csv"
        path.write_text(SAMPLE_CSV, encoding="utf-8")

        rows = list(read_csv_rows(path))

        assert rows[0]["provider_id"] == "130077"
        assert len(rows) == 6


class TestDocuments:
    def test_build_documents(self, tmp_path):
        path = tmp_path / "fcc.csv"
        path.write_text(SAMPLE_CSV, encoding="utf-8")
        counties, _ = aggregate_rows(read_csv_rows(path))

        docs = build_documents(counties, "2025-06-30", "https://x/ms.csv", fetched_at="2025-07-01T00:00:00.000Z")

        assert [d["_id"] for d in docs] == ["01001:2025-06-30", "28163:2025-06-30"]
        yazoo = docs[1]
        assert yazoo["providerCount"] == 3
        assert yazoo["speed"] == {"25_3": True, "100_20": True, "1000_100": True}
        assert yazoo["tech"] == ["Fiber", "Cable", "Satellite"]
        assert yazoo["geoType"] == "county"
        assert yazoo["source"] == "FCC NBM CSV"
        assert yazoo["sourceUrl"] == "https://x/ms.csv"
        assert yazoo["fetchedAt"] == "2025-07-01T00:00:00.000Z"
        assert docs[0]["speed"] == {"25_3": False, "100_20": False, "1000_100": False}

    @pytest.mark.asyncio
    async def test_upsert_documents(self):
        collection = Mock()
        collection.bulk_write = AsyncMock(return_value=Mock(upserted_count=1, matched_count=1))
        docs = [
            {"_id": "28163:2025-06-30", "fetchedAt": "t"},
            {"_id": "01001:2025-06-30", "fetchedAt": "t"},
        ]

        assert await upsert_documents(collection, docs) == 2

        operations = collection.bulk_write.call_args[0][0]
        assert len(operations) == 2
        assert operations[0] == UpdateOne(
            {"_id": "28163:2025-06-30"},
            {"$set": {"fetchedAt": "t"}, "$setOnInsert": {"createdAt": "t"}},
            upsert=True,
        )

    @pytest.mark.asyncio
    async def test_upsert_nothing(self):
        collection = Mock()
        collection.bulk_write = AsyncMock()
        assert await upsert_documents(collection, []) == 0
        collection.bulk_write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upsert_store_unreachable(self):
        collection = Mock()
        collection.bulk_write = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

        with pytest.raises(IngestError, match="upsert failed"):
            await upsert_documents(collection, [{"_id": "28163:2025-06-30", "fetchedAt": "t"}])


class TestDownload:
    @pytest.mark.asyncio
    async def test_streams_to_file(self, tmp_path):
        session = FakeSession(FakeResponse(200, raw=b"a,b\n1,2\n"))
        dest = tmp_path / "out.csv"

        written = await download_csv(session, "https://x/ms.csv", dest, chunk_size=3)

        assert written == 8
        assert dest.read_bytes() == b"a,b\n1,2\n"

    @pytest.mark.asyncio
    async def test_non_200_raises(self, tmp_path):
        session = FakeSession(FakeResponse(404))
        with pytest.raises(IngestError, match="HTTP 404"):
            await download_csv(session, "https://x/ms.csv", tmp_path / "out.csv")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, tmp_path):
        session = FakeSession(aiohttp.ClientConnectionError("refused"))
        with pytest.raises(IngestError):
            await download_csv(session, "https://x/ms.csv", tmp_path / "out.csv")

    @pytest.mark.asyncio
    async def test_timeout_raises(self, tmp_path):
        session = FakeSession(asyncio.TimeoutError())
        with pytest.raises(IngestError, match="timed out"):
            await download_csv(session, "https://x/ms.csv", tmp_path / "out.csv", timeout_seconds=5)

    @pytest.mark.asyncio
    async def test_run_ingest(self):
        session = FakeSession(FakeResponse(200, raw=SAMPLE_CSV.encode("utf-8")))
        collection = Mock()
        collection.bulk_write = AsyncMock(return_value=Mock(upserted_count=2, matched_count=0))

        summary = await run_ingest(session, collection, "MS", "2025-06-30", "https://x/ms.csv")

        assert summary.rows == 6
        assert summary.counties == 2
        assert summary.upserts == 2
        assert summary.bytes_downloaded == len(SAMPLE_CSV.encode("utf-8"))
        assert session.calls[0]["url"] == "https://x/ms.csv"
