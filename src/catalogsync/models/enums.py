from enum import StrEnum


class UpsertOutcome(StrEnum):
    CREATED = "created"
    REPLACED = "replaced"
    FAILED = "failed"


class Classification(StrEnum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class SyncPhase(StrEnum):
    FETCH = "fetch"
    READ = "read"
    WRITE = "write"
