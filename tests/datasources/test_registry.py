"""Tests for DataSourceRegistry routing, lifecycle and adapter replacement."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from tests._support.fakes import FakeAdapter, rows
from vigil.core.errors import (
    DataSourceConnectionError,
    NotConnectedError,
    OperationTimeoutError,
    QueryError,
    UnsupportedBackendError,
)
from vigil.core.settings import VigilSettings
from vigil.datasources.registry import DataSourceRegistry
from vigil.datasources.types import DataSourceConfig, DataSourceType, Query


class _SlowAdapter(FakeAdapter):
    async def _execute(self, handle, query):
        await asyncio.sleep(1)
        return rows(1)


class _FailingOpenAdapter(FakeAdapter):
    async def _open(self, config, timeout):
        raise ConnectionRefusedError("Connection refused")


class TestAdapterRegistration:
    def test_with_defaults_registers_builtin_kinds(self):
        registry = DataSourceRegistry.with_defaults(VigilSettings(query_timeout_seconds=7))
        assert registry.supported_types() == ["CSV", "JSON", "MYSQL", "POSTGRESQL", "REST_API"]
        assert registry.get("postgres").query_timeout(None) == 7

    def test_register_is_case_insensitive(self, registry, fake_adapter):
        assert registry.get("PostgreSQL") is fake_adapter
        assert registry.get("pg") is fake_adapter

    @pytest.mark.asyncio
    async def test_unregister_closes_connections(self, registry, fake_adapter):
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        await registry.unregister("postgresql")

        assert registry.get("postgresql") is None
        assert fake_adapter.closed
        assert not registry.is_connected("db")

    @pytest.mark.asyncio
    async def test_unregister_unknown_is_noop(self, registry):
        await registry.unregister("oracle")
        assert registry.supported_types() == ["POSTGRESQL"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_connect_defaults_source_id_to_kind(self, registry):
        source_id = await registry.connect("postgres", DataSourceConfig())
        assert source_id == "POSTGRESQL"
        assert registry.connected_sources() == {"POSTGRESQL": "POSTGRESQL"}

    @pytest.mark.asyncio
    async def test_connect_unknown_kind(self, registry):
        with pytest.raises(UnsupportedBackendError):
            await registry.connect("oracle", DataSourceConfig())

    @pytest.mark.asyncio
    async def test_reconnect_closes_only_previous_handle(self, registry, fake_adapter):
        await registry.connect("postgresql", DataSourceConfig(database="a"), source_id="a")
        await registry.connect("postgresql", DataSourceConfig(database="b"), source_id="b")
        await registry.connect("postgresql", DataSourceConfig(database="a2"), source_id="a")

        assert len(fake_adapter.closed) == 1
        assert fake_adapter.closed[0]["config"].database == "a"
        assert registry.connected_sources() == {"a": "POSTGRESQL", "b": "POSTGRESQL"}

    @pytest.mark.asyncio
    async def test_connect_failure_carries_source_id(self, registry):
        registry.register("mysql", _FailingOpenAdapter(kind=DataSourceType.MYSQL))
        with pytest.raises(DataSourceConnectionError) as exc:
            await registry.connect("mysql", DataSourceConfig(host="db"), source_id="orders")
        assert exc.value.context.source_id == "orders"
        assert not registry.is_connected("orders")

    @pytest.mark.asyncio
    async def test_disconnect_all(self, registry, fake_adapter):
        await registry.connect("postgresql", DataSourceConfig(), source_id="a")
        await registry.connect("postgresql", DataSourceConfig(), source_id="b")
        await registry.disconnect_all()

        assert registry.connected_sources() == {}
        assert len(fake_adapter.closed) == 2

    @pytest.mark.asyncio
    async def test_disconnect_unknown_is_noop(self, registry):
        await registry.disconnect("postgresql", source_id="never")


class TestQueries:
    @pytest.mark.asyncio
    async def test_query_by_kind(self, registry, fake_adapter):
        fake_adapter.results = [rows(42)]
        await registry.connect("postgresql", DataSourceConfig())
        result = await registry.query("POSTGRESQL", "SELECT 42")

        assert result.rows == [{"value": 42}]
        assert fake_adapter.queries[0][1] == Query(statement="SELECT 42")

    @pytest.mark.asyncio
    async def test_query_unsupported_kind(self, registry):
        with pytest.raises(UnsupportedBackendError):
            await registry.query("oracle", "SELECT 1")

    @pytest.mark.asyncio
    async def test_query_not_connected(self, registry):
        with pytest.raises(NotConnectedError):
            await registry.query("postgresql", "SELECT 1")

    @pytest.mark.asyncio
    async def test_query_wrong_kind_for_source(self, registry):
        registry.register("mysql", FakeAdapter(kind=DataSourceType.MYSQL))
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        with pytest.raises(NotConnectedError):
            await registry.query("mysql", "SELECT 1", source_id="db")

    @pytest.mark.asyncio
    async def test_query_source_not_connected(self, registry):
        with pytest.raises(NotConnectedError) as exc:
            await registry.query_source("missing", Query(statement="SELECT 1"))
        assert exc.value.context.source_id == "missing"

    @pytest.mark.asyncio
    async def test_sources_of_same_kind_are_independent(self, registry, fake_adapter):
        await registry.connect("postgresql", DataSourceConfig(database="a"), source_id="a")
        await registry.connect("postgresql", DataSourceConfig(database="b"), source_id="b")

        await registry.query_source("a", "SELECT 1")
        await registry.query_source("b", "SELECT 1")

        databases = [handle["config"].database for handle, _ in fake_adapter.queries]
        assert databases == ["a", "b"]

    @pytest.mark.asyncio
    async def test_query_error_carries_source_id(self, registry, fake_adapter):
        fake_adapter.results = [QueryError("syntax error")]
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        with pytest.raises(QueryError) as exc:
            await registry.query_source("db", "SELEC 1")
        assert exc.value.context.source_id == "db"
        assert exc.value.context.kind == "POSTGRESQL"

    @pytest.mark.asyncio
    async def test_query_timeout(self, registry):
        registry.register("postgresql", _SlowAdapter())
        await registry.connect("postgresql", DataSourceConfig(timeout=0.05), source_id="db")
        with pytest.raises(OperationTimeoutError):
            await registry.query_source("db", "SELECT pg_sleep(1)")


class TestAdapterReplacement:
    @pytest.mark.asyncio
    async def test_replacement_routes_to_new_adapter(self, registry, fake_adapter):
        await registry.connect("postgresql", DataSourceConfig(database="metrics"), source_id="db")
        replacement = FakeAdapter([rows(7)])
        registry.register("POSTGRESQL", replacement)

        result = await registry.query_source("db", "SELECT 7")

        assert result.rows == [{"value": 7}]
        assert fake_adapter.queries == []
        assert len(fake_adapter.closed) == 1
        assert replacement.opened[0]["config"].database == "metrics"

    @pytest.mark.asyncio
    async def test_replacement_reopens_once(self, registry):
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        replacement = FakeAdapter([rows(1)])
        registry.register("postgresql", replacement)

        await asyncio.gather(*(registry.query_source("db", "SELECT 1") for _ in range(5)))

        assert len(replacement.opened) == 1
        assert len(replacement.queries) == 5

    @pytest.mark.asyncio
    async def test_disconnect_queued_before_reopen_wins(self, registry):
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        replacement = FakeAdapter([rows(1)])
        registry.register("postgresql", replacement)

        release = asyncio.Event()

        async def hold_source_lock():
            async with registry._locks.hold("db"):
                await release.wait()

        holder = asyncio.create_task(hold_source_lock())
        await asyncio.sleep(0)
        disconnect = asyncio.create_task(registry.disconnect_source("db"))
        query = asyncio.create_task(registry.query_source("db", "SELECT 1"))
        await asyncio.sleep(0)
        release.set()
        await holder
        await disconnect

        with pytest.raises(NotConnectedError):
            await query
        assert replacement.opened == []
        assert registry.connected_sources() == {}

    @pytest.mark.asyncio
    async def test_disconnect_drops_source_lock(self, registry):
        await registry.connect("postgresql", DataSourceConfig(), source_id="db")
        assert "db" in registry._locks

        await registry.disconnect_source("db")

        assert "db" not in registry._locks
        assert len(registry._locks) == 0


class TestProbe:
    @pytest.mark.asyncio
    async def test_unsupported_kind_fails_without_raising(self, registry):
        result = await registry.test("oracle", DataSourceConfig())
        assert result.success is False
        assert result.message == "Unsupported data source type: ORACLE"

    @pytest.mark.asyncio
    async def test_success(self, registry):
        result = await registry.test("postgresql", DataSourceConfig())
        assert result.success is True
        assert result.message == "Fake connection successful"

    @pytest.mark.asyncio
    async def test_unreachable_postgres_reports_failure(self):
        registry = DataSourceRegistry.with_defaults(VigilSettings())
        refused = ConnectionRefusedError("Connection refused")
        with patch("asyncpg.create_pool", new_callable=AsyncMock, side_effect=refused):
            result = await registry.test("postgresql", DataSourceConfig(host="127.0.0.1", port=1))
        assert result.success is False
        assert "refused" in result.message

    @pytest.mark.asyncio
    async def test_missing_csv_reports_failure(self, tmp_path):
        registry = DataSourceRegistry.with_defaults(VigilSettings())
        result = await registry.test("csv", DataSourceConfig(file_path=str(tmp_path / "absent.csv")))
        assert result.success is False
