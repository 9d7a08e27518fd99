"""
Data sources: a uniform connect/test/query contract over heterogeneous backends.

Adapters (one per backend kind) are stateless strategies; the
:class:`DataSourceRegistry` owns live connections keyed by data source id.

Example:
    >>> from vigil.datasources import DataSourceRegistry, DataSourceConfig, Query
    >>> registry = DataSourceRegistry.with_defaults()
    >>> await registry.connect("csv", DataSourceConfig(file_path="cpu.csv"), source_id="cpu")
    >>> result = await registry.query_source("cpu", Query())
"""

from .base import DataSourceAdapter
from .file import CsvFileAdapter, JsonFileAdapter
from .http import HttpApiAdapter, parse_where_params
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .registry import DataSourceRegistry
from .types import (
    DataSourceConfig,
    DataSourceType,
    Query,
    QueryResult,
    TestResult,
    normalize_kind,
)

__all__ = [
    # Types
    "DataSourceType",
    "DataSourceConfig",
    "Query",
    "QueryResult",
    "TestResult",
    "normalize_kind",
    # Adapters
    "DataSourceAdapter",
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "HttpApiAdapter",
    "CsvFileAdapter",
    "JsonFileAdapter",
    "parse_where_params",
    # Registry
    "DataSourceRegistry",
]
