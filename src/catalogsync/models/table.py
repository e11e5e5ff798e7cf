from datetime import datetime
from typing import Any

from pydantic import Field, ValidationInfo, field_validator, model_validator

from catalogsync.models.base import (
    RecordModel,
    ensure_hex_digest,
    ensure_non_empty_text,
    ensure_timezone_aware,
)
from catalogsync.models.column import Column


class TableKey(RecordModel):
    """Natural key of a table: (database, schema_name, name)."""

    database: str
    schema_name: str
    name: str

    def __str__(self) -> str:
        return f"{self.database}.{self.schema_name}.{self.name}"


class TableDescription(RecordModel):
    database: str
    schema_name: str
    name: str
    comment: str | None = None
    columns: list[Column] = Field(default_factory=list)

    @field_validator("database", "schema_name", "name")
    @classmethod
    def _ensure_non_empty(cls, value: str, info: ValidationInfo) -> str:
        return ensure_non_empty_text(value, info.field_name or "value")

    @model_validator(mode="after")
    def _validate_ordinal_positions(self) -> "TableDescription":
        positions = [column.ordinal_position for column in self.columns]
        if len(positions) != len(set(positions)):
            raise ValueError(f"duplicate ordinal_position in columns of {self.key}")
        return self

    @property
    def key(self) -> TableKey:
        return TableKey(database=self.database, schema_name=self.schema_name, name=self.name)


class StoredTableRecord(TableDescription):
    """Persisted counterpart of a TableDescription with its content signature."""

    signature: str
    created_at: datetime
    updated_at: datetime

    @field_validator("signature", mode="before")
    @classmethod
    def _validate_signature(cls, value: Any) -> str:
        return ensure_hex_digest(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _validate_timestamps(cls, value: Any, info: ValidationInfo) -> datetime:
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if not isinstance(value, datetime):
            raise TypeError(f"{info.field_name} must be a datetime")
        return ensure_timezone_aware(value)

    def to_description(self) -> TableDescription:
        return TableDescription(
            database=self.database,
            schema_name=self.schema_name,
            name=self.name,
            comment=self.comment,
            columns=self.columns,
        )


__all__ = ["TableKey", "TableDescription", "StoredTableRecord"]
