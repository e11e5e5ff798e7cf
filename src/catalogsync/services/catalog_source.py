"""Catalog source that reads the table and column inventory from Snowflake.

The Snowflake connector is synchronous, so blocking calls are wrapped in
asyncio.to_thread() to keep the same async interface as the other services.
"""

import asyncio
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

import structlog
from pydantic import ValidationError
from snowflake.connector import DictCursor, SnowflakeConnection
from snowflake.connector.errors import Error as SnowflakeError

from catalogsync.errors import CatalogFetchError
from catalogsync.models.column import Column
from catalogsync.models.table import TableDescription

CATALOG_QUERY = """
SELECT
  t.table_catalog    AS "DATABASE",
  t.table_schema     AS "SCHEMA",
  t.table_name       AS "TABLE_NAME",
  t.comment          AS "TABLE_COMMENT",
  c.column_name      AS "COLUMN_NAME",
  c.data_type        AS "DATA_TYPE",
  c.is_nullable      AS "IS_NULLABLE",
  c.comment          AS "COLUMN_COMMENT",
  c.ordinal_position AS "ORDINAL_POSITION"
FROM snowflake.account_usage.tables t
LEFT JOIN snowflake.account_usage.columns c
  ON c.table_id = t.table_id
 AND c.deleted IS NULL
WHERE t.deleted IS NULL
  AND t.table_type = 'BASE TABLE'
ORDER BY
  t.table_catalog,
  t.table_schema,
  t.table_name,
  c.ordinal_position
"""


class CatalogSource(Protocol):
    async def fetch_all(self) -> list[TableDescription]: ...


def group_catalog_rows(rows: Iterable[Mapping[str, Any]]) -> list[TableDescription]:
    """Fold flat table/column rows into one TableDescription per table.

    Rows must arrive ordered by table and ordinal position. Table order and
    column order are preserved. A row without a column name comes from a
    table with no columns and contributes only the table itself.
    """
    tables: dict[tuple[str, str, str], dict[str, Any]] = {}

    for row in rows:
        key = (row["DATABASE"], row["SCHEMA"], row["TABLE_NAME"])
        entry = tables.get(key)
        if entry is None:
            entry = {
                "database": row["DATABASE"],
                "schema_name": row["SCHEMA"],
                "name": row["TABLE_NAME"],
                "comment": row["TABLE_COMMENT"],
                "columns": [],
            }
            tables[key] = entry

        if row["COLUMN_NAME"] is None:
            continue
        entry["columns"].append(
            Column(
                name=row["COLUMN_NAME"],
                data_type=row["DATA_TYPE"],
                is_nullable=row["IS_NULLABLE"] == "YES",
                comment=row["COLUMN_COMMENT"],
                ordinal_position=row["ORDINAL_POSITION"],
            )
        )

    return [TableDescription.model_validate(entry) for entry in tables.values()]


class SnowflakeCatalogSource:
    """Fetches every visible base table with its columns in one query.

    Holds a single long-lived connection created by the injected factory.
    Call open() before fetching and close() on shutdown, or use the source
    as an async context manager.
    """

    def __init__(
        self,
        connection_factory: Callable[[], SnowflakeConnection],
        table_limit: int = 0,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if table_limit < 0:
            raise ValueError("table_limit must be zero or positive")
        self._connection_factory = connection_factory
        self._table_limit = table_limit
        self._logger = logger or structlog.get_logger(__name__)
        self._connection: SnowflakeConnection | None = None

    async def open(self) -> None:
        """Open the warehouse connection if it is not open yet."""
        if self._connection is not None:
            return
        try:
            self._connection = await asyncio.to_thread(self._connection_factory)
        except SnowflakeError as e:
            self._logger.error("warehouse_connect_failed", error=str(e))
            raise CatalogFetchError(f"failed to connect to Snowflake: {e}") from e
        self._logger.info("warehouse_connected")

    async def close(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        try:
            await asyncio.to_thread(connection.close)
        except SnowflakeError as e:
            self._logger.error("warehouse_close_failed", error=str(e))
            return
        self._logger.info("warehouse_connection_closed")

    async def __aenter__(self) -> "SnowflakeCatalogSource":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def fetch_all(self) -> list[TableDescription]:
        """Fetch all tables and their columns.

        Returns:
            Table descriptions ordered by database, schema and table name,
            truncated to table_limit tables when a limit is set.

        Raises:
            CatalogFetchError: If the query fails.
            RuntimeError: If the source has not been opened.
        """
        if self._connection is None:
            raise RuntimeError("SnowflakeCatalogSource not opened. Call open() first.")

        self._logger.debug("catalog_query_started")
        try:
            rows = await asyncio.to_thread(self._execute, CATALOG_QUERY)
        except SnowflakeError as e:
            self._logger.error("catalog_query_failed", error=str(e))
            raise CatalogFetchError(f"catalog query failed: {e}") from e

        try:
            tables = group_catalog_rows(rows)
        except ValidationError as e:
            self._logger.error("catalog_rows_invalid", error=str(e))
            raise CatalogFetchError(f"catalog returned invalid rows: {e}") from e
        if self._table_limit:
            tables = tables[: self._table_limit]

        self._logger.debug("catalog_query_completed", row_count=len(rows), table_count=len(tables))
        return tables

    def _execute(self, sql: str) -> list[dict[str, Any]]:
        cursor = self._connection.cursor(DictCursor)
        try:
            cursor.execute(sql)
            return cursor.fetchall()
        finally:
            cursor.close()
