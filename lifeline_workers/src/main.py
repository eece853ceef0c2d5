"""
Command line entry point for the ingest workers.

Usage:
    civic-lifeline-worker ingest-fcc --state MS --as-of 2025-06-30
    civic-lifeline-worker ingest-fcc --state MS --as-of 2025-06-30 --url https://.../ms.csv
"""

import asyncio
from typing import Annotated, Optional

import aiohttp
import structlog
import typer
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from lifeline_shared.logging import bind_context, configure_logging

from lifeline_workers.src.config import WorkerConfig, get_config
from lifeline_workers.src.fcc_ingest import (
    COLLECTION,
    IngestError,
    IngestSummary,
    build_csv_url,
    run_ingest,
    validate_args,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="civic-lifeline-worker",
    help="Civic Lifeline ingest workers.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def cli() -> None:
    """Civic Lifeline ingest workers."""


async def _ingest(config: WorkerConfig, state: str, as_of: str, url: str) -> IngestSummary:
    try:
        client = AsyncMongoClient(
            config.mongo.uri,
            serverSelectionTimeoutMS=config.mongo.server_selection_timeout_ms,
        )
    except PyMongoError as e:
        raise IngestError(f"invalid MongoDB configuration: {e}")

    try:
        collection = client[config.mongo.db][COLLECTION]
        async with aiohttp.ClientSession() as session:
            return await run_ingest(
                session,
                collection,
                state,
                as_of,
                url,
                timeout_seconds=config.fcc.download_timeout_seconds,
                chunk_size=config.fcc.chunk_size,
            )
    finally:
        await client.close()


@app.command("ingest-fcc")
def ingest_fcc(
    state: Annotated[str, typer.Option("--state", help="Two-letter state code, e.g. MS.")],
    as_of: Annotated[str, typer.Option("--as-of", "--asOf", help="Release date, YYYY-MM-DD.")],
    url: Annotated[Optional[str], typer.Option("--url", help="CSV URL, overrides FCC_CSV_URL_TEMPLATE.")] = None,
) -> None:
    """Aggregate an FCC broadband availability CSV into per-county summaries."""
    config = get_config()
    configure_logging(
        log_level=config.log_level,
        json_logs=config.log_format == "json",
        service_name=config.service_name,
        environment=config.environment,
    )

    try:
        state, as_of = validate_args(state, as_of)
        source_url = build_csv_url(config.fcc.csv_url_template, state, as_of, url)
    except IngestError as e:
        typer.echo(f"error: {e.message}", err=True)
        raise typer.Exit(code=2)

    if not config.mongo.uri:
        typer.echo("error: MONGO_URI is required", err=True)
        raise typer.Exit(code=2)

    bind_context(state=state, as_of=as_of)
    try:
        summary = asyncio.run(_ingest(config, state, as_of, source_url))
    except IngestError as e:
        logger.error("fcc_ingest_failed", error=e.message)
        typer.echo(f"error: {e.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"Upserted {summary.upserts} county summaries "
        f"({summary.counties} counties, {summary.rows} rows) from {summary.url}"
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
