"""SQLModel table definitions for database persistence.

The persistence table is kept apart from the frozen pydantic domain models in
table.py and column.py: SQLModel rows are mutable ORM objects that the store
updates in place, while the domain models stay immutable and validated.

Columns are stored as a JSON array of column dicts in ordinal order. Field
names otherwise match StoredTableRecord so conversion goes through
.model_dump() and .model_validate().
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Index
from sqlmodel import Field, SQLModel


class TableMetadataRecord(SQLModel, table=True):
    """One row per warehouse table, unique on (database, schema_name, name)."""

    __tablename__ = "table_metadata"
    __table_args__ = (
        Index("ux_table_metadata_key", "database", "schema_name", "name", unique=True),
    )

    id: int | None = Field(default=None, primary_key=True)
    database: str
    schema_name: str
    name: str
    comment: str | None = None
    columns: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    signature: str
    created_at: datetime
    updated_at: datetime
