"""Table store service for persisting table metadata to SQLite.

Uses SQLAlchemy's native async support with aiosqlite. Each write runs in a
single transaction so a row's signature is never visible without the fields
it was computed from.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, nullcontext
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import SingletonThreadPool, StaticPool
from sqlmodel import SQLModel

from catalogsync.errors import StoreReadError, StoreWriteError
from catalogsync.models.enums import UpsertOutcome
from catalogsync.models.table import StoredTableRecord, TableDescription, TableKey
from catalogsync.models.tables import TableMetadataRecord


class TableStore:
    """Keyed store of table metadata addressed by (database, schema_name, name).

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing.

    Engines that hand every session the same DBAPI connection (in-memory
    SQLite) get their sessions serialized, otherwise one session closing
    would roll back another session's uncommitted write.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)
        shared_connection = isinstance(engine.sync_engine.pool, (StaticPool, SingletonThreadPool))
        self._session_lock = asyncio.Lock() if shared_connection else None

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self._lock():
            async with self._engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        self._logger.info("table_store_initialized")

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def get_signature(self, key: TableKey) -> str | None:
        """Return only the stored signature for a key.

        Args:
            key: Natural key of the table.

        Returns:
            The stored signature, or None if no record exists.

        Raises:
            StoreReadError: If the database cannot be queried.
        """
        statement = select(TableMetadataRecord.signature).where(*self._key_clause(key))
        try:
            async with self._session() as session:
                result = await session.execute(statement)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreReadError(f"failed to read signature for {key}: {e}", key=key) from e

    async def upsert(self, table: TableDescription, signature: str) -> UpsertOutcome:
        """Create or replace the full record for a table's natural key.

        Args:
            table: The freshly fetched table description.
            signature: Signature computed from the same description.

        Returns:
            UpsertOutcome.CREATED if the key was new, UpsertOutcome.REPLACED otherwise.

        Raises:
            StoreWriteError: If the write is rejected, e.g. by the unique key
                constraint when another writer created the key concurrently.
        """
        key = table.key
        columns = [column.model_dump(mode="json") for column in table.columns]
        now = datetime.now(timezone.utc)

        try:
            async with self._session() as session:
                result = await session.execute(select(TableMetadataRecord).where(*self._key_clause(key)))
                existing = result.scalar_one_or_none()
                if existing:
                    existing.comment = table.comment or None
                    existing.columns = columns
                    existing.signature = signature
                    existing.updated_at = now
                    outcome = UpsertOutcome.REPLACED
                else:
                    session.add(
                        TableMetadataRecord(
                            database=table.database,
                            schema_name=table.schema_name,
                            name=table.name,
                            comment=table.comment or None,
                            columns=columns,
                            signature=signature,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    outcome = UpsertOutcome.CREATED
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"failed to write {key}: {e}", key=key) from e

        self._logger.debug(
            "table_upserted",
            table=str(key),
            outcome=outcome.value,
            column_count=len(columns),
        )
        return outcome

    async def get_table(self, key: TableKey) -> StoredTableRecord | None:
        """Retrieve the full stored record for a key.

        Returns:
            The StoredTableRecord if found, None otherwise.
        """
        try:
            async with self._session() as session:
                result = await session.execute(select(TableMetadataRecord).where(*self._key_clause(key)))
                record = result.scalar_one_or_none()
                if record is None:
                    return None
                return self._record_to_stored(record)
        except SQLAlchemyError as e:
            raise StoreReadError(f"failed to read {key}: {e}", key=key) from e

    async def list_tables(self) -> list[StoredTableRecord]:
        """Retrieve every stored record ordered by natural key."""
        statement = select(TableMetadataRecord).order_by(
            TableMetadataRecord.database,
            TableMetadataRecord.schema_name,
            TableMetadataRecord.name,
        )
        try:
            async with self._session() as session:
                result = await session.execute(statement)
                return [self._record_to_stored(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreReadError(f"failed to list tables: {e}") from e

    async def count(self) -> int:
        try:
            async with self._session() as session:
                result = await session.execute(select(func.count()).select_from(TableMetadataRecord))
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise StoreReadError(f"failed to count tables: {e}") from e

    def _lock(self) -> asyncio.Lock | nullcontext:
        return self._session_lock or nullcontext()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._lock():
            async with AsyncSession(self._engine) as session:
                yield session

    @staticmethod
    def _key_clause(key: TableKey) -> tuple:
        return (
            TableMetadataRecord.database == key.database,
            TableMetadataRecord.schema_name == key.schema_name,
            TableMetadataRecord.name == key.name,
        )

    def _record_to_stored(self, record: TableMetadataRecord) -> StoredTableRecord:
        """Convert SQLModel record to domain StoredTableRecord.

        SQLite doesn't preserve timezone info, so we restore UTC timezone.
        """
        data = record.model_dump(exclude={"id"})
        for field in ("created_at", "updated_at"):
            if data[field].tzinfo is None:
                data[field] = data[field].replace(tzinfo=timezone.utc)
        return StoredTableRecord.model_validate(data)


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)
