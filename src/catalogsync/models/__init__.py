from catalogsync.models.column import Column
from catalogsync.models.enums import Classification, SyncPhase, UpsertOutcome
from catalogsync.models.table import StoredTableRecord, TableDescription, TableKey

__all__ = [
    "Column",
    "TableKey",
    "TableDescription",
    "StoredTableRecord",
    "UpsertOutcome",
    "Classification",
    "SyncPhase",
]
