"""Exception taxonomy for catalog synchronization.

Every error carries a machine-readable error code and a details dict so the
HTTP layer can render it without knowing the concrete type.
"""

from typing import TYPE_CHECKING, Any

from catalogsync.models.enums import SyncPhase
from catalogsync.models.table import TableKey

if TYPE_CHECKING:
    from catalogsync.services.reconciler import SyncResult


class CatalogSyncError(Exception):
    """Base class for all catalogsync errors."""

    error_code = "CATALOG_SYNC_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class CatalogFetchError(CatalogSyncError):
    """The catalog source could not produce the table list."""

    error_code = "CATALOG_FETCH_FAILED"
    phase = SyncPhase.FETCH


class StoreError(CatalogSyncError):
    """Base class for table store failures."""

    error_code = "STORE_ERROR"

    def __init__(self, message: str, key: TableKey | None = None) -> None:
        self.key = key
        details = {"table": str(key)} if key is not None else None
        super().__init__(message, details)


class StoreReadError(StoreError):
    error_code = "STORE_READ_FAILED"


class StoreWriteError(StoreError):
    error_code = "STORE_WRITE_FAILED"


class ReconciliationError(CatalogSyncError):
    """A table could not be classified or written during a sync pass.

    Attributes:
        phase: Which step failed for the table (read or write).
        key: Natural key of the failing table.
        partial: Counts for the tables that were classified successfully.
    """

    error_code = "RECONCILIATION_FAILED"

    def __init__(
        self,
        message: str,
        phase: SyncPhase,
        key: TableKey,
        partial: "SyncResult",
    ) -> None:
        self.phase = phase
        self.key = key
        self.partial = partial
        super().__init__(
            message,
            {
                "phase": phase.value,
                "table": str(key),
                "partial": partial.model_dump(),
            },
        )
