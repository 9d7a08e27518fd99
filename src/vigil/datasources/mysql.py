"""MySQL data source adapter.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package.
MySQL uses **format** (``%s``) placeholder style.

The driver is blocking, so every call runs on a worker thread via
``asyncio.to_thread``; the pool itself is thread-safe. When a deadline
expires the awaiting coroutine fails with a timeout while the worker thread
finishes on its own.
"""

from __future__ import annotations

import uuid
from typing import Any

from vigil.core.errors import ConfigError, QueryError

from .base import DataSourceAdapter
from .types import DataSourceConfig, DataSourceType, Query, QueryResult

DEFAULT_PORT = 3306


def _import_connector() -> Any:
    try:
        import mysql.connector
        from mysql.connector import pooling  # noqa: F401
    except ImportError:
        raise ConfigError(
            "mysql-connector-python is required for MySQL. Install with: pip install mysql-connector-python"
        ) from None
    return mysql.connector


def _connect_kwargs(config: DataSourceConfig, timeout: float) -> dict[str, Any]:
    return {
        "host": config.host or "localhost",
        "port": config.port or DEFAULT_PORT,
        "user": config.username,
        "password": config.password,
        "database": config.database,
        "connection_timeout": max(1, int(timeout)),
        "charset": config.options.get("charset", "utf8mb4"),
    }


class MySQLAdapter(DataSourceAdapter):
    """MySQL / MariaDB adapter backed by a ``MySQLConnectionPool`` per data source."""

    kind = DataSourceType.MYSQL
    display_name = "MySQL"

    async def _open(self, config: DataSourceConfig, timeout: float) -> Any:
        connector = _import_connector()
        size = self.pool_size(config)

        def create() -> Any:
            pool = connector.pooling.MySQLConnectionPool(
                pool_name=f"vigil_mysql_{uuid.uuid4().hex[:8]}",
                pool_size=size,
                autocommit=True,
                **_connect_kwargs(config, timeout),
            )
            conn = pool.get_connection()
            try:
                conn.ping(reconnect=False)
            finally:
                conn.close()  # returns to pool
            return pool

        return await self.run_blocking(create)

    async def _close(self, handle: Any) -> None:
        # MySQLConnectionPool has no public closeall(); idle connections are
        # dropped with the pool reference.
        remove = getattr(handle, "_remove_connections", None)
        if remove is not None:
            await self.run_blocking(remove)

    async def _execute(self, handle: Any, query: Query) -> QueryResult:
        connector = _import_connector()

        def run() -> QueryResult:
            conn = handle.get_connection()
            try:
                cursor = conn.cursor(dictionary=True)
                try:
                    cursor.execute(query.statement, tuple(query.parameters))
                    rows = cursor.fetchall() if cursor.with_rows else []
                    columns = list(cursor.column_names or ())
                finally:
                    cursor.close()
            finally:
                conn.close()  # returns to pool
            return QueryResult(columns=columns, rows=[dict(row) for row in rows])

        try:
            return await self.run_blocking(run)
        except connector.Error as e:
            raise QueryError(f"MySQL query failed: {e}", cause=e) from e

    async def _probe(self, config: DataSourceConfig, timeout: float) -> str:
        connector = _import_connector()

        def probe() -> None:
            conn = connector.connect(**_connect_kwargs(config, timeout))
            try:
                conn.ping(reconnect=False)
            finally:
                conn.close()

        await self.run_blocking(probe)
        return "MySQL connection successful"


__all__ = [
    "MySQLAdapter",
]
