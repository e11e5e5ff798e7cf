from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from catalogsync.models.column import Column
from catalogsync.models.table import StoredTableRecord, TableDescription, TableKey


def _make_hash() -> str:
    return "0123456789abcdef" * 4


def _make_columns() -> list[Column]:
    return [
        Column(name="id", data_type="NUMBER", is_nullable=False, ordinal_position=1),
        Column(name="email", data_type="TEXT", is_nullable=True, comment="login", ordinal_position=2),
    ]


def test_table_key_is_derived_from_natural_key_fields() -> None:
    table = TableDescription(database="D", schema_name="S", name="T", columns=_make_columns())

    assert table.key == TableKey(database="D", schema_name="S", name="T")
    assert str(table.key) == "D.S.T"


def test_table_keys_are_hashable_and_compare_by_value() -> None:
    keys = {
        TableKey(database="D", schema_name="S", name="T"),
        TableKey(database="D", schema_name="S", name="T"),
    }

    assert len(keys) == 1


def test_table_defaults_to_no_columns() -> None:
    table = TableDescription(database="D", schema_name="S", name="T")

    assert table.columns == []
    assert table.comment is None


def test_table_rejects_duplicate_ordinal_positions() -> None:
    with pytest.raises(ValidationError):
        TableDescription(
            database="D",
            schema_name="S",
            name="T",
            columns=[
                Column(name="a", data_type="TEXT", is_nullable=True, ordinal_position=1),
                Column(name="b", data_type="TEXT", is_nullable=True, ordinal_position=1),
            ],
        )


def test_table_rejects_empty_schema_name() -> None:
    with pytest.raises(ValidationError):
        TableDescription(database="D", schema_name="", name="T")


def test_table_accepts_columns_as_dicts() -> None:
    table = TableDescription.model_validate(
        {
            "database": "D",
            "schema_name": "S",
            "name": "T",
            "columns": [{"name": "id", "data_type": "NUMBER", "is_nullable": False, "ordinal_position": 1}],
        }
    )

    assert table.columns[0] == Column(name="id", data_type="NUMBER", is_nullable=False, ordinal_position=1)


def test_stored_record_requires_timezone_aware_timestamps() -> None:
    with pytest.raises(ValidationError):
        StoredTableRecord(
            database="D",
            schema_name="S",
            name="T",
            signature=_make_hash(),
            created_at=datetime.now(),
            updated_at=datetime.now(),
        )


def test_stored_record_rejects_invalid_signature() -> None:
    now = datetime.now(timezone.utc)
    with pytest.raises(ValidationError):
        StoredTableRecord(
            database="D",
            schema_name="S",
            name="T",
            signature="not-hex",
            created_at=now,
            updated_at=now,
        )


def test_stored_record_normalizes_signature_case() -> None:
    now = datetime.now(timezone.utc)
    record = StoredTableRecord(
        database="D",
        schema_name="S",
        name="T",
        signature=_make_hash().upper(),
        created_at=now,
        updated_at=now,
    )

    assert record.signature == _make_hash()


def test_stored_record_converts_back_to_description() -> None:
    now = datetime.now(timezone.utc)
    record = StoredTableRecord(
        database="D",
        schema_name="S",
        name="T",
        comment="orders",
        columns=_make_columns(),
        signature=_make_hash(),
        created_at=now,
        updated_at=now,
    )

    assert record.to_description() == TableDescription(
        database="D",
        schema_name="S",
        name="T",
        comment="orders",
        columns=_make_columns(),
    )


def test_stored_record_round_trip() -> None:
    created = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)
    record = StoredTableRecord(
        database="D",
        schema_name="S",
        name="T",
        columns=_make_columns(),
        signature=_make_hash(),
        created_at=created,
        updated_at=created,
    )

    restored = StoredTableRecord.from_record(record.to_record())
    assert restored == record
