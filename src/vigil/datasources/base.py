"""Data source adapter base class.

Manifesto:
    An adapter is the logic for talking to one backend kind. It does not own
    a connection: ``open()`` returns a handle (a pool, a client, a file
    reference) and every later call receives that handle back. The registry
    keeps one handle per logical data source, so two PostgreSQL sources are
    two independent pools served by the same adapter object.

Features:
    - Abstract ``_open()``, ``_close()``, ``_execute()``, ``_probe()``
    - Deadlines on every operation (``config.timeout`` or the adapter default)
    - Driver failures wrapped with adapter kind and elapsed time
    - ``test()`` never raises; failures become ``TestResult(success=False)``
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from vigil.core.errors import (
    DataSourceConnectionError,
    NotConnectedError,
    OperationTimeoutError,
    QueryError,
    VigilError,
)
from vigil.core.logging import get_logger
from vigil.core.timestamps import elapsed_ms, monotonic_ms

from .types import DataSourceConfig, DataSourceType, Query, QueryResult, TestResult

log = get_logger(__name__)


class DataSourceAdapter(ABC):
    """
    Abstract base class for data source adapters.

    Subclasses implement the underscore hooks; the public methods add
    deadlines, timing and error wrapping.
    """

    kind: DataSourceType
    display_name: str = ""

    DEFAULT_QUERY_TIMEOUT = 30.0
    DEFAULT_TEST_TIMEOUT = 10.0
    DEFAULT_POOL_SIZE = 10

    def __init__(
        self,
        *,
        query_timeout: float | None = None,
        test_timeout: float | None = None,
        pool_size: int | None = None,
    ):
        self._query_timeout = query_timeout or self.DEFAULT_QUERY_TIMEOUT
        self._test_timeout = test_timeout or self.DEFAULT_TEST_TIMEOUT
        self._pool_size = pool_size or self.DEFAULT_POOL_SIZE

    @property
    def name(self) -> str:
        return self.display_name or self.kind.value

    # ------------------------------------------------------------------ #
    # Hooks
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _open(self, config: DataSourceConfig, timeout: float) -> Any:
        """Establish and validate a long-lived handle."""
        ...

    @abstractmethod
    async def _close(self, handle: Any) -> None:
        """Release a handle returned by ``_open``."""
        ...

    @abstractmethod
    async def _execute(self, handle: Any, query: Query) -> QueryResult:
        """Run a query; ``duration_ms`` is filled in by the caller."""
        ...

    @abstractmethod
    async def _probe(self, config: DataSourceConfig, timeout: float) -> str:
        """Open an isolated connection, probe it, tear it down; return a message."""
        ...

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def query_timeout(self, config: DataSourceConfig | None) -> float:
        if config is not None and config.timeout:
            return config.timeout
        return self._query_timeout

    def test_timeout(self, config: DataSourceConfig | None) -> float:
        if config is not None and config.timeout:
            return config.timeout
        return self._test_timeout

    def pool_size(self, config: DataSourceConfig) -> int:
        return config.pool_size or self._pool_size

    async def open(self, config: DataSourceConfig) -> Any:
        """Connect: create the handle a data source will use for queries."""
        timeout = self.query_timeout(config)
        start = monotonic_ms()
        try:
            handle = await asyncio.wait_for(self._open(config, timeout), timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"{self.name} connect timed out after {timeout:g}s", cause=e
            ).with_context(kind=self.kind.value, elapsed_ms=elapsed_ms(start)) from e
        except VigilError as e:
            e.with_context(kind=self.kind.value, elapsed_ms=elapsed_ms(start))
            raise
        except Exception as e:
            raise DataSourceConnectionError(
                f"Failed to connect to {self.name}: {e}", cause=e
            ).with_context(kind=self.kind.value, elapsed_ms=elapsed_ms(start)) from e
        log.info("datasource_connected", kind=self.kind.value, elapsed_ms=elapsed_ms(start))
        return handle

    async def close(self, handle: Any) -> None:
        """Disconnect a handle. Errors are logged; closing never raises."""
        if handle is None:
            return
        try:
            await self._close(handle)
        except Exception as e:
            log.warning("datasource_close_failed", kind=self.kind.value, error=str(e))

    async def execute(
        self,
        handle: Any,
        query: Query,
        *,
        timeout: float | None = None,
    ) -> QueryResult:
        """Run ``query`` against ``handle`` under a deadline."""
        if handle is None:
            raise NotConnectedError(f"{self.name} is not connected").with_context(kind=self.kind.value)

        timeout = timeout or self._query_timeout
        start = monotonic_ms()
        try:
            result = await asyncio.wait_for(self._execute(handle, query), timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"{self.name} query timed out after {timeout:g}s", cause=e
            ).with_context(kind=self.kind.value, elapsed_ms=elapsed_ms(start)) from e
        except VigilError as e:
            e.with_context(kind=self.kind.value, elapsed_ms=elapsed_ms(start))
            raise
        except Exception as e:
            raise QueryError(f"{self.name} query failed: {e}", cause=e).with_context(
                kind=self.kind.value, elapsed_ms=elapsed_ms(start)
            ) from e

        result.duration_ms = elapsed_ms(start)
        log.debug(
            "datasource_query",
            kind=self.kind.value,
            rows=result.row_count,
            duration_ms=result.duration_ms,
        )
        return result

    async def test(self, config: DataSourceConfig) -> TestResult:
        """Probe ``config`` with a throwaway connection. Never raises."""
        timeout = self.test_timeout(config)
        start = monotonic_ms()
        try:
            message = await asyncio.wait_for(self._probe(config, timeout), timeout)
        except asyncio.TimeoutError:
            return TestResult.fail(f"Connection timed out after {timeout:g}s")
        except Exception as e:
            log.info("datasource_test_failed", kind=self.kind.value, error=str(e))
            return TestResult.fail(str(e) or e.__class__.__name__)
        return TestResult.ok(message, latency_ms=elapsed_ms(start))

    async def run_blocking(self, func, /, *args: Any) -> Any:
        """Run a blocking driver call on a worker thread."""
        return await asyncio.to_thread(func, *args)


__all__ = [
    "DataSourceAdapter",
]
