"""PostgreSQL data source adapter.

Uses ``asyncpg`` connection pools. Statements use PostgreSQL's native
``$1, $2`` positional placeholders; ``Query.parameters`` are bound in order.

This adapter is import-guarded: if ``asyncpg`` is not installed a clear
:class:`~vigil.core.errors.ConfigError` is raised at connect/test time.
"""

from __future__ import annotations

from typing import Any

from vigil.core.errors import ConfigError, QueryError

from .base import DataSourceAdapter
from .types import DataSourceConfig, DataSourceType, Query, QueryResult

DEFAULT_PORT = 5432


def _import_asyncpg() -> Any:
    try:
        import asyncpg
    except ImportError:
        raise ConfigError("asyncpg is required for PostgreSQL. Install with: pip install asyncpg") from None
    return asyncpg


def _connect_kwargs(config: DataSourceConfig, timeout: float) -> dict[str, Any]:
    return {
        "host": config.host or "localhost",
        "port": config.port or DEFAULT_PORT,
        "user": config.username,
        "password": config.password,
        "database": config.database,
        "timeout": timeout,
        **config.options,
    }


class PostgreSQLAdapter(DataSourceAdapter):
    """PostgreSQL adapter backed by an ``asyncpg`` pool per data source."""

    kind = DataSourceType.POSTGRESQL
    display_name = "PostgreSQL"

    async def _open(self, config: DataSourceConfig, timeout: float) -> Any:
        asyncpg = _import_asyncpg()
        pool = await asyncpg.create_pool(
            min_size=1,
            max_size=self.pool_size(config),
            command_timeout=timeout,
            **_connect_kwargs(config, timeout),
        )
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def _close(self, handle: Any) -> None:
        await handle.close()

    async def _execute(self, handle: Any, query: Query) -> QueryResult:
        asyncpg = _import_asyncpg()
        try:
            async with handle.acquire() as conn:
                statement = await conn.prepare(query.statement)
                records = await statement.fetch(*query.parameters)
                columns = [attr.name for attr in statement.get_attributes()]
        except asyncpg.PostgresError as e:
            raise QueryError(f"PostgreSQL query failed: {e}", cause=e) from e

        rows = [dict(record.items()) for record in records]
        return QueryResult(columns=columns, rows=rows)

    async def _probe(self, config: DataSourceConfig, timeout: float) -> str:
        asyncpg = _import_asyncpg()
        pool = await asyncpg.create_pool(min_size=1, max_size=1, **_connect_kwargs(config, timeout))
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        finally:
            await pool.close()
        return "PostgreSQL connection successful"


__all__ = [
    "PostgreSQLAdapter",
]
