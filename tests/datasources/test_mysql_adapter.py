"""Tests for the MySQL adapter with a mocked mysql.connector."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import mysql.connector
import pytest

from vigil.core.errors import QueryError
from vigil.datasources.mysql import MySQLAdapter
from vigil.datasources.types import DataSourceConfig, Query


def _pool_with_cursor(cursor: MagicMock) -> MagicMock:
    conn = MagicMock()
    conn.cursor.return_value = cursor
    pool = MagicMock()
    pool.get_connection.return_value = conn
    return pool


class TestMySQLAdapter:
    @pytest.mark.asyncio
    async def test_open_builds_pool_and_pings(self):
        with patch("mysql.connector.pooling.MySQLConnectionPool") as pool_class:
            handle = await MySQLAdapter(pool_size=3).open(
                DataSourceConfig(host="mysql.internal", username="vigil", database="metrics")
            )

        assert handle is pool_class.return_value
        kwargs = pool_class.call_args.kwargs
        assert kwargs["pool_size"] == 3
        assert kwargs["host"] == "mysql.internal"
        assert kwargs["port"] == 3306
        conn = handle.get_connection.return_value
        conn.ping.assert_called_once_with(reconnect=False)
        conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_execute_returns_dict_rows(self):
        cursor = MagicMock()
        cursor.with_rows = True
        cursor.fetchall.return_value = [{"value": 12}]
        cursor.column_names = ("value",)
        pool = _pool_with_cursor(cursor)

        result = await MySQLAdapter().execute(
            pool, Query(statement="SELECT value FROM m WHERE host = %s", parameters=["a"])
        )

        cursor.execute.assert_called_once_with("SELECT value FROM m WHERE host = %s", ("a",))
        assert result.rows == [{"value": 12}]
        assert result.columns == ["value"]
        pool.get_connection.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_driver_error_is_query_error(self):
        cursor = MagicMock()
        cursor.execute.side_effect = mysql.connector.Error("You have an error in your SQL syntax")
        pool = _pool_with_cursor(cursor)

        with pytest.raises(QueryError) as exc:
            await MySQLAdapter().execute(pool, Query(statement="SELEC 1"))
        assert exc.value.context.kind == "MYSQL"
        cursor.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_probe_failure(self):
        with patch("mysql.connector.connect", side_effect=mysql.connector.Error("Can't connect to MySQL server")):
            result = await MySQLAdapter().test(DataSourceConfig(host="127.0.0.1", port=1))
        assert result.success is False
        assert result.message

    @pytest.mark.asyncio
    async def test_probe_success(self):
        with patch("mysql.connector.connect") as connect:
            result = await MySQLAdapter().test(DataSourceConfig(host="mysql.internal"))
        assert result.success is True
        connect.return_value.close.assert_called_once()
