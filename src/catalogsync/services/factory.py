"""Factory functions for creating and wiring the reconciliation services.

Provides production factories backed by Snowflake and the configured database,
and a test factory that uses an in-memory store with any catalog source.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import partial

import snowflake.connector
import structlog
from sqlalchemy.ext.asyncio import create_async_engine

from catalogsync.config import Settings
from catalogsync.services.catalog_source import CatalogSource, SnowflakeCatalogSource
from catalogsync.services.reconciler import Reconciler
from catalogsync.services.table_store import TableStore, create_async_engine_from_path


def create_table_store(database_url: str) -> TableStore:
    """Create a TableStore for a SQLAlchemy async database URL."""
    logger = structlog.get_logger(__name__)
    return TableStore(engine=create_async_engine(database_url), logger=logger)


def create_catalog_source(settings: Settings) -> SnowflakeCatalogSource:
    """Create a Snowflake catalog source from settings.

    The connection itself is opened lazily by SnowflakeCatalogSource.open().
    """
    logger = structlog.get_logger(__name__)
    return SnowflakeCatalogSource(
        connection_factory=partial(snowflake.connector.connect, **settings.snowflake_connect_kwargs()),
        table_limit=settings.SNOWFLAKE_TABLE_LIMIT,
        logger=logger,
    )


@asynccontextmanager
async def open_reconciler(settings: Settings) -> AsyncIterator[Reconciler]:
    """Open the warehouse connection and table store for the lifetime of the context.

    The connection is acquired once and reused by every pass run inside the
    context. Both resources are released on exit, including on error.

    Args:
        settings: Process settings.

    Yields:
        Reconciler ready to run passes.
    """
    table_store = create_table_store(settings.DATABASE_URL)
    catalog_source = create_catalog_source(settings)
    try:
        await table_store.initialize_schema()
        async with catalog_source:
            yield Reconciler(
                catalog_source=catalog_source,
                table_store=table_store,
                max_concurrency=settings.SYNC_CONCURRENCY,
                logger=structlog.get_logger(__name__),
            )
    finally:
        await table_store.dispose()


async def create_test_reconciler(
    catalog_source: CatalogSource,
    max_concurrency: int = 1,
) -> tuple[Reconciler, TableStore]:
    """Create a Reconciler with an initialized in-memory store for testing.

    Each call creates independent storage, so tests don't interfere.

    Returns:
        The Reconciler and the TableStore it writes to.
    """
    logger = structlog.get_logger(__name__)

    table_store = TableStore(engine=create_async_engine_from_path(":memory:"), logger=logger)
    await table_store.initialize_schema()

    reconciler = Reconciler(
        catalog_source=catalog_source,
        table_store=table_store,
        max_concurrency=max_concurrency,
        logger=logger,
    )
    return reconciler, table_store
