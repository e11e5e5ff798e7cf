"""Tests for the service factory module."""

from pathlib import Path

import pytest
import snowflake.connector

from catalogsync.config import Settings
from catalogsync.models.column import Column
from catalogsync.models.table import TableDescription
from catalogsync.services.catalog_source import SnowflakeCatalogSource
from catalogsync.services.factory import (
    create_catalog_source,
    create_table_store,
    create_test_reconciler,
    open_reconciler,
)
from catalogsync.services.reconciler import Reconciler, SyncResult
from catalogsync.services.table_store import TableStore


class FakeCursor:
    def __init__(self, rows: list[dict]) -> None:
        self._rows = rows

    def execute(self, sql: str) -> None:
        pass

    def fetchall(self) -> list[dict]:
        return self._rows

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self, rows: list[dict]) -> None:
        self._rows = rows
        self.closed = False

    def cursor(self, cursor_class=None) -> FakeCursor:
        return FakeCursor(self._rows)

    def close(self) -> None:
        self.closed = True


class EmptyCatalogSource:
    async def fetch_all(self) -> list[TableDescription]:
        return []


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "SNOWFLAKE_ACCOUNT": "acct",
        "SNOWFLAKE_USER": "loader",
        "SNOWFLAKE_PASSWORD": "secret",
        "SNOWFLAKE_ROLE": None,
        "SNOWFLAKE_WAREHOUSE": None,
        "SNOWFLAKE_TABLE_LIMIT": 0,
        "SYNC_CONCURRENCY": 1,
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestCreateTableStore:
    def test_creates_table_store_instance(self, tmp_path: Path) -> None:
        store = create_table_store(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")

        assert isinstance(store, TableStore)


class TestCreateCatalogSource:
    def test_creates_unopened_snowflake_source(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[dict] = []
        monkeypatch.setattr(snowflake.connector, "connect", lambda **kwargs: calls.append(kwargs))

        source = create_catalog_source(_settings(tmp_path))

        assert isinstance(source, SnowflakeCatalogSource)
        assert calls == []

    def test_passes_table_limit(self, tmp_path: Path) -> None:
        source = create_catalog_source(_settings(tmp_path, SNOWFLAKE_TABLE_LIMIT=5))

        assert source._table_limit == 5


class TestOpenReconciler:
    async def test_opens_connection_once_and_closes_on_exit(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        rows = [
            {
                "DATABASE": "D",
                "SCHEMA": "S",
                "TABLE_NAME": "T",
                "TABLE_COMMENT": None,
                "COLUMN_NAME": "id",
                "DATA_TYPE": "NUMBER",
                "IS_NULLABLE": "NO",
                "COLUMN_COMMENT": None,
                "ORDINAL_POSITION": 1,
            }
        ]
        connections: list[FakeConnection] = []
        connect_kwargs: list[dict] = []

        def fake_connect(**kwargs) -> FakeConnection:
            connect_kwargs.append(kwargs)
            connection = FakeConnection(rows)
            connections.append(connection)
            return connection

        monkeypatch.setattr(snowflake.connector, "connect", fake_connect)
        settings = _settings(tmp_path, SNOWFLAKE_ROLE="SYSADMIN", SYNC_CONCURRENCY=2)

        async with open_reconciler(settings) as reconciler:
            assert isinstance(reconciler, Reconciler)
            first = await reconciler.run()
            second = await reconciler.run()

        assert first == SyncResult(total_tables=1, inserted=1, updated=0, skipped=0)
        assert second == SyncResult(total_tables=1, inserted=0, updated=0, skipped=1)
        assert len(connections) == 1
        assert connections[0].closed
        assert connect_kwargs == [
            {"account": "acct", "user": "loader", "password": "secret", "role": "SYSADMIN"}
        ]
        assert (tmp_path / "catalog.db").exists()


class TestCreateTestReconciler:
    async def test_returns_reconciler_with_initialized_store(self) -> None:
        reconciler, store = await create_test_reconciler(EmptyCatalogSource())

        assert isinstance(reconciler, Reconciler)
        assert await store.count() == 0

    async def test_stores_are_independent(self) -> None:
        table = TableDescription(
            database="D",
            schema_name="S",
            name="T",
            columns=[Column(name="id", data_type="NUMBER", is_nullable=False, ordinal_position=1)],
        )

        class OneTableSource:
            async def fetch_all(self) -> list[TableDescription]:
                return [table]

        first, first_store = await create_test_reconciler(OneTableSource())
        _, second_store = await create_test_reconciler(OneTableSource())
        await first.run()

        assert await first_store.count() == 1
        assert await second_store.count() == 0
