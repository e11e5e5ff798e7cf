"""Catalog sync CLI.

Runs sync passes from the Snowflake catalog into the local table store,
inspects stored tables, and serves the HTTP trigger.
"""

import asyncio
import json
from typing import Optional

import structlog
import typer

from catalogsync.config import get_settings
from catalogsync.errors import CatalogFetchError, ReconciliationError
from catalogsync.log import configure_logging
from catalogsync.models.table import StoredTableRecord, TableKey
from catalogsync.services.factory import create_table_store, open_reconciler
from catalogsync.services.reconciler import SyncResult

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="catalogsync",
    help="""Reconcile Snowflake table metadata into a local store.

Examples:

  # Run one sync pass
  uv run catalogsync sync

  # Show a stored table
  uv run catalogsync show ANALYTICS PUBLIC ORDERS

  # Start the HTTP trigger
  uv run catalogsync serve --port 8000""",
    rich_markup_mode="markdown",
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (default: LOG_LEVEL from the environment)",
    ),
) -> None:
    level = log_level or get_settings().LOG_LEVEL
    try:
        configure_logging(level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e


@app.command()
def sync() -> None:
    """Run one sync pass and print the summary."""
    settings = get_settings()

    async def run_sync() -> SyncResult:
        async with open_reconciler(settings) as reconciler:
            return await reconciler.run()

    try:
        result = asyncio.run(run_sync())
    except CatalogFetchError as e:
        logger.error("sync_fetch_failed", error=e.message)
        typer.echo(f"Fetching the catalog failed: {e.message}", err=True)
        raise typer.Exit(1)
    except ReconciliationError as e:
        logger.error("sync_reconciliation_failed", phase=e.phase.value, table=str(e.key))
        typer.echo(f"Reconciliation failed ({e.phase.value}) for {e.key}: {e.message}", err=True)
        typer.echo(_format_summary(e.partial, prefix="Before failure:"), err=True)
        raise typer.Exit(1)

    typer.echo(_format_summary(result, prefix="Synced"))


@app.command()
def show(
    database: str = typer.Argument(..., help="Database name"),
    schema_name: str = typer.Argument(..., help="Schema name"),
    name: str = typer.Argument(..., help="Table name"),
) -> None:
    """Print a stored table as JSON."""
    key = TableKey(database=database, schema_name=schema_name, name=name)

    async def load() -> StoredTableRecord | None:
        store = create_table_store(get_settings().DATABASE_URL)
        try:
            await store.initialize_schema()
            return await store.get_table(key)
        finally:
            await store.dispose()

    record = asyncio.run(load())
    if record is None:
        typer.echo(f"No stored table {key}", err=True)
        raise typer.Exit(1)

    typer.echo(json.dumps(record.to_record(), indent=2))


@app.command()
def serve(
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to serve on (default: PORT from the environment)",
    ),
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "-h",
        help="Host to serve on (default: HOST from the environment)",
    ),
) -> None:
    """Start the HTTP server exposing POST /sync."""
    import uvicorn

    settings = get_settings()
    host = host or settings.HOST
    port = port or settings.PORT

    logger.info("starting_api_server", host=host, port=port)
    uvicorn.run(
        "catalogsync.api:create_application",
        factory=True,
        host=host,
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
    )


@app.command()
def version() -> None:
    """Show version information."""
    from catalogsync import __version__

    typer.echo(f"catalogsync {__version__}")


def _format_summary(result: SyncResult, prefix: str) -> str:
    return (
        f"{prefix} {result.total_tables} tables "
        f"({result.inserted} inserted, {result.updated} updated, {result.skipped} skipped)"
    )
