"""Reconciler that syncs the warehouse catalog into the table store.

One pass fetches the full catalog, computes a signature per table, compares it
with the stored signature and writes only new or changed tables.
"""

import asyncio
from typing import Protocol

import structlog
from pydantic import BaseModel, Field, model_validator

from catalogsync.errors import ReconciliationError, StoreReadError, StoreWriteError
from catalogsync.models.enums import Classification, SyncPhase, UpsertOutcome
from catalogsync.models.table import TableDescription, TableKey
from catalogsync.services.catalog_source import CatalogSource
from catalogsync.services.signature import compute_signature


class SyncResult(BaseModel):
    """Summary of a reconciliation pass."""

    total_tables: int = Field(ge=0)
    inserted: int = Field(ge=0)
    updated: int = Field(ge=0)
    skipped: int = Field(ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _validate_totals(self) -> "SyncResult":
        if self.inserted + self.updated + self.skipped != self.total_tables:
            raise ValueError("inserted + updated + skipped must equal total_tables")
        return self

    @classmethod
    def from_classifications(cls, classifications: list[Classification]) -> "SyncResult":
        return cls(
            total_tables=len(classifications),
            inserted=classifications.count(Classification.INSERTED),
            updated=classifications.count(Classification.UPDATED),
            skipped=classifications.count(Classification.SKIPPED),
        )


class SignatureStore(Protocol):
    async def get_signature(self, key: TableKey) -> str | None: ...

    async def upsert(self, table: TableDescription, signature: str) -> UpsertOutcome: ...


class _TableProcessingError(Exception):
    def __init__(self, key: TableKey, phase: SyncPhase, cause: Exception) -> None:
        self.key = key
        self.phase = phase
        self.cause = cause
        super().__init__(str(cause))


class Reconciler:
    """Runs reconciliation passes between a catalog source and a table store.

    Tables are classified independently. With max_concurrency of 1 they are
    processed strictly in fetched order and the pass stops at the first
    failure. Higher values fan out with at most max_concurrency tables in
    flight and aggregate the counts once every table has finished.
    """

    def __init__(
        self,
        catalog_source: CatalogSource,
        table_store: SignatureStore,
        max_concurrency: int = 1,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._catalog_source = catalog_source
        self._table_store = table_store
        self._max_concurrency = max_concurrency
        self._logger = logger or structlog.get_logger(__name__)

    async def run(self) -> SyncResult:
        """Run one full sync pass.

        Returns:
            SyncResult with counts for every fetched table.

        Raises:
            CatalogFetchError: If the catalog could not be fetched. Nothing
                is written in that case.
            ReconciliationError: If a table's signature could not be read or
                its record could not be written. Carries the counts of the
                tables classified successfully.
        """
        self._logger.info("sync_started", max_concurrency=self._max_concurrency)

        tables = await self._catalog_source.fetch_all()
        self._logger.info("catalog_fetched", table_count=len(tables))

        if self._max_concurrency == 1:
            classifications = await self._run_sequential(tables)
        else:
            classifications = await self._run_concurrent(tables)

        result = SyncResult.from_classifications(classifications)
        self._logger.info(
            "sync_completed",
            total_tables=result.total_tables,
            inserted=result.inserted,
            updated=result.updated,
            skipped=result.skipped,
        )
        return result

    async def _run_sequential(self, tables: list[TableDescription]) -> list[Classification]:
        classifications: list[Classification] = []
        for table in tables:
            try:
                classifications.append(await self._reconcile_table(table))
            except _TableProcessingError as e:
                raise self._abort(e, classifications) from e.cause
        return classifications

    async def _run_concurrent(self, tables: list[TableDescription]) -> list[Classification]:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(table: TableDescription) -> Classification:
            async with semaphore:
                return await self._reconcile_table(table)

        outcomes = await asyncio.gather(
            *(bounded(table) for table in tables),
            return_exceptions=True,
        )

        classifications = [o for o in outcomes if isinstance(o, Classification)]
        for outcome in outcomes:
            if isinstance(outcome, _TableProcessingError):
                raise self._abort(outcome, classifications) from outcome.cause
            if isinstance(outcome, BaseException):
                raise outcome
        return classifications

    def _abort(
        self,
        error: _TableProcessingError,
        classifications: list[Classification],
    ) -> ReconciliationError:
        partial = SyncResult.from_classifications(classifications)
        self._logger.error(
            "sync_failed",
            table=str(error.key),
            phase=error.phase.value,
            error=str(error),
            classified=partial.total_tables,
        )
        return ReconciliationError(
            f"{error.phase.value} failed for {error.key}: {error}",
            phase=error.phase,
            key=error.key,
            partial=partial,
        )

    async def _reconcile_table(self, table: TableDescription) -> Classification:
        """Classify one table and write it when it is new or changed."""
        key = table.key
        signature = compute_signature(table)

        try:
            stored_signature = await self._table_store.get_signature(key)
        except StoreReadError as e:
            raise _TableProcessingError(key, SyncPhase.READ, e) from e

        if stored_signature == signature:
            self._logger.debug("table_skipped", table=str(key))
            return Classification.SKIPPED

        try:
            outcome = await self._table_store.upsert(table, signature)
        except StoreWriteError as e:
            raise _TableProcessingError(key, SyncPhase.WRITE, e) from e

        if outcome == UpsertOutcome.CREATED:
            classification = Classification.INSERTED
        elif outcome == UpsertOutcome.REPLACED:
            classification = Classification.UPDATED
        else:
            error = StoreWriteError(f"upsert of {key} reported {outcome}", key=key)
            raise _TableProcessingError(key, SyncPhase.WRITE, error)

        self._logger.debug(
            "table_written",
            table=str(key),
            classification=classification.value,
            had_previous=stored_signature is not None,
        )
        return classification
