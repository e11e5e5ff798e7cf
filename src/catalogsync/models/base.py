from datetime import datetime
from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict

T_Model = TypeVar("T_Model", bound="RecordModel")


class RecordModel(BaseModel):
    """Immutable base model with serialization helpers for storage adapters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls: Type[T_Model], data: Mapping[str, Any] | BaseModel) -> T_Model:
        return cls.model_validate(data)


def ensure_hex_digest(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError("expected string hex digest")
    digest = value.strip().lower()
    if not digest:
        raise ValueError("hex digest cannot be empty")
    if len(digest) % 2 != 0:
        raise ValueError("hex digest length must be even")
    if any(ch not in "0123456789abcdef" for ch in digest):
        raise ValueError("hex digest must contain only hexadecimal characters")
    return digest


def ensure_timezone_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError("datetime must be timezone-aware")
    return dt


def ensure_non_empty_text(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    if not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value
