"""Data source registry: kind -> adapter, source id -> live connection.

Manifesto:
    Adapters are stateless strategy objects, one per backend kind. The
    registry owns the live handles, keyed by a logical data source id, so
    two PostgreSQL sources are two independent pools behind the same
    adapter. Kind-addressed calls (``query("MYSQL", ...)``) keep working:
    when no ``source_id`` is given it defaults to the normalized kind name.

Features:
    - ``register()`` / ``unregister()`` with case-insensitive kinds
    - ``connect()`` per source id; reconnecting one id never touches another
    - After an adapter is replaced, connections it opened are reopened lazily
      with the new adapter from their retained config
    - Lifecycle operations serialized per source id; queries run concurrently
    - ``test()`` never raises

Usage:
    registry = DataSourceRegistry.with_defaults()
    await registry.connect("postgresql", config, source_id="orders-db")
    result = await registry.query_source("orders-db", Query("SELECT count(*) FROM orders"))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from vigil.core.errors import NotConnectedError, UnsupportedBackendError, VigilError
from vigil.core.locks import KeyedLocks
from vigil.core.logging import get_logger
from vigil.core.timestamps import utc_now

from .base import DataSourceAdapter
from .file import CsvFileAdapter, JsonFileAdapter
from .http import HttpApiAdapter
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .types import DataSourceConfig, DataSourceType, Query, QueryResult, TestResult, normalize_kind

if TYPE_CHECKING:
    from vigil.core.settings import VigilSettings

log = get_logger(__name__)


@dataclass
class _Connection:
    source_id: str
    kind: str
    config: DataSourceConfig
    adapter: DataSourceAdapter
    handle: Any
    connected_at: datetime = field(default_factory=utc_now)


class DataSourceRegistry:
    """
    Routes data source operations to the adapter registered for each kind.

    Pre-registered by :meth:`with_defaults`:
    - ``MYSQL`` - :class:`MySQLAdapter`
    - ``POSTGRESQL`` - :class:`PostgreSQLAdapter`
    - ``REST_API`` - :class:`HttpApiAdapter`
    - ``CSV`` / ``JSON`` - file adapters
    """

    def __init__(self) -> None:
        self._adapters: dict[str, DataSourceAdapter] = {}
        self._connections: dict[str, _Connection] = {}
        self._locks = KeyedLocks()

    @classmethod
    def with_defaults(cls, settings: VigilSettings | None = None) -> DataSourceRegistry:
        """Create a registry with every built-in adapter registered."""
        if settings is None:
            from vigil.core.settings import get_settings

            settings = get_settings()
        defaults = {
            "query_timeout": settings.query_timeout_seconds,
            "test_timeout": settings.test_timeout_seconds,
            "pool_size": settings.pool_size,
        }
        registry = cls()
        for adapter_class in (MySQLAdapter, PostgreSQLAdapter, HttpApiAdapter, CsvFileAdapter, JsonFileAdapter):
            adapter = adapter_class(**defaults)
            registry.register(adapter.kind, adapter)
        return registry

    # ------------------------------------------------------------------ #
    # Adapters
    # ------------------------------------------------------------------ #

    def register(self, kind: DataSourceType | str, adapter: DataSourceAdapter) -> None:
        """Register ``adapter`` for ``kind``, replacing any existing one."""
        key = normalize_kind(kind)
        replaced = key in self._adapters and self._adapters[key] is not adapter
        self._adapters[key] = adapter
        log.debug("datasource_adapter_registered", kind=key, replaced=replaced)

    async def unregister(self, kind: DataSourceType | str) -> None:
        """Disconnect every source of ``kind`` and remove its adapter. No-op if absent."""
        key = normalize_kind(kind)
        if key not in self._adapters:
            return
        for source_id in [c.source_id for c in self._connections.values() if c.kind == key]:
            await self.disconnect_source(source_id)
        self._adapters.pop(key, None)
        log.debug("datasource_adapter_unregistered", kind=key)

    def get(self, kind: DataSourceType | str) -> DataSourceAdapter | None:
        return self._adapters.get(normalize_kind(kind))

    def supported_types(self) -> list[str]:
        """List registered kinds."""
        return sorted(self._adapters)

    def _require_adapter(self, kind: str) -> DataSourceAdapter:
        adapter = self._adapters.get(kind)
        if adapter is None:
            raise UnsupportedBackendError(kind)
        return adapter

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def connect(
        self,
        kind: DataSourceType | str,
        config: DataSourceConfig,
        *,
        source_id: str | None = None,
    ) -> str:
        """Open a live connection for ``source_id`` and return the id.

        Reconnecting an id closes its previous handle only.
        """
        key = normalize_kind(kind)
        adapter = self._require_adapter(key)
        source_id = source_id or key

        async with self._locks.hold(source_id):
            previous = self._connections.pop(source_id, None)
            if previous is not None:
                await previous.adapter.close(previous.handle)
            try:
                handle = await adapter.open(config)
            except VigilError as e:
                e.with_context(source_id=source_id)
                raise
            self._connections[source_id] = _Connection(
                source_id=source_id,
                kind=key,
                config=config,
                adapter=adapter,
                handle=handle,
            )
        log.info("datasource_source_connected", source_id=source_id, kind=key)
        return source_id

    async def disconnect(self, kind: DataSourceType | str, *, source_id: str | None = None) -> None:
        """Close the connection for ``source_id`` (default: the kind's own id)."""
        await self.disconnect_source(source_id or normalize_kind(kind))

    async def disconnect_source(self, source_id: str) -> None:
        async with self._locks.hold(source_id):
            connection = self._connections.pop(source_id, None)
            if connection is None:
                return
            await connection.adapter.close(connection.handle)
        self._locks.discard(source_id)
        log.info("datasource_source_disconnected", source_id=source_id, kind=connection.kind)

    async def disconnect_all(self) -> None:
        """Close every live connection (shutdown)."""
        for source_id in list(self._connections):
            await self.disconnect_source(source_id)

    def connected_sources(self) -> dict[str, str]:
        """Map of connected source id -> kind."""
        return {source_id: c.kind for source_id, c in self._connections.items()}

    def is_connected(self, source_id: str) -> bool:
        return source_id in self._connections

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def query(
        self,
        kind: DataSourceType | str,
        query: Query | str,
        *,
        source_id: str | None = None,
    ) -> QueryResult:
        """Route ``query`` by kind.

        Raises:
            UnsupportedBackendError: no adapter is registered for ``kind``
            NotConnectedError: ``source_id`` has no live connection of that kind
        """
        key = normalize_kind(kind)
        self._require_adapter(key)
        source_id = source_id or key
        connection = self._connections.get(source_id)
        if connection is None or connection.kind != key:
            raise NotConnectedError(f"Data source {source_id!r} is not connected").with_context(
                source_id=source_id, kind=key
            )
        return await self._run(connection, _as_query(query))

    async def query_source(self, source_id: str, query: Query | str) -> QueryResult:
        """Route ``query`` to the live connection registered as ``source_id``."""
        connection = self._connections.get(source_id)
        if connection is None:
            raise NotConnectedError(f"Data source {source_id!r} is not connected").with_context(
                source_id=source_id
            )
        self._require_adapter(connection.kind)
        return await self._run(connection, _as_query(query))

    async def _run(self, connection: _Connection, query: Query) -> QueryResult:
        adapter, handle = await self._current_handle(connection)
        try:
            return await adapter.execute(handle, query, timeout=adapter.query_timeout(connection.config))
        except VigilError as e:
            e.with_context(source_id=connection.source_id)
            raise

    async def _current_handle(self, connection: _Connection) -> tuple[DataSourceAdapter, Any]:
        """Return ``(adapter, handle)``, reopening if the kind's adapter was replaced."""
        adapter = self._require_adapter(connection.kind)
        if connection.adapter is adapter and connection.handle is not None:
            return adapter, connection.handle

        async with self._locks.hold(connection.source_id):
            if self._connections.get(connection.source_id) is not connection:
                raise NotConnectedError(f"Data source {connection.source_id!r} is not connected").with_context(
                    source_id=connection.source_id, kind=connection.kind
                )
            adapter = self._require_adapter(connection.kind)
            if connection.adapter is not adapter or connection.handle is None:
                await connection.adapter.close(connection.handle)
                connection.adapter = adapter
                connection.handle = None
                connection.handle = await adapter.open(connection.config)
                connection.connected_at = utc_now()
                log.info(
                    "datasource_source_reopened",
                    source_id=connection.source_id,
                    kind=connection.kind,
                )
            return adapter, connection.handle

    async def test(self, kind: DataSourceType | str, config: DataSourceConfig) -> TestResult:
        """Probe ``config`` with the adapter for ``kind``. Never raises."""
        key = normalize_kind(kind)
        adapter = self._adapters.get(key)
        if adapter is None:
            return TestResult.fail(f"Unsupported data source type: {key}")
        try:
            return await adapter.test(config)
        except Exception as e:
            log.warning("datasource_test_error", kind=key, error=str(e))
            return TestResult.fail(str(e) or e.__class__.__name__)


def _as_query(query: Query | str) -> Query:
    return Query(statement=query) if isinstance(query, str) else query


__all__ = [
    "DataSourceRegistry",
]
