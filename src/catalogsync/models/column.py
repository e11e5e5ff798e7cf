from pydantic import Field, ValidationInfo, field_validator

from catalogsync.models.base import RecordModel, ensure_non_empty_text


class Column(RecordModel):
    name: str
    data_type: str
    is_nullable: bool
    comment: str | None = None
    ordinal_position: int = Field(ge=1)

    @field_validator("name", "data_type")
    @classmethod
    def _ensure_non_empty(cls, value: str, info: ValidationInfo) -> str:
        return ensure_non_empty_text(value, info.field_name or "value")


__all__ = ["Column"]
