"""
Flat-file data source adapters (CSV and JSON).

Files have no query language: every query is a full scan and the statement
is ignored. The handle returned by ``open()`` is just a validated
:class:`FileHandle`; the file is re-read on every query so rules always see
the current contents.

Example:
    >>> adapter = CsvFileAdapter()
    >>> handle = await adapter.open(DataSourceConfig(file_path="metrics.csv"))
    >>> result = await adapter.execute(handle, Query())
"""

from __future__ import annotations

import csv
import json
import math
from abc import abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from vigil.core.errors import DataSourceConnectionError, QueryError

from .base import DataSourceAdapter
from .types import DataSourceConfig, DataSourceType, Query, QueryResult


@dataclass(frozen=True)
class FileHandle:
    """A file reference validated at connect time."""

    path: Path
    encoding: str = "utf-8"
    delimiter: str = ","


def coerce_cell(value: str | None) -> Any:
    """Turn numeric-looking CSV cells into ``int`` / ``float``.

    Empty cells and anything that does not parse stay strings.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return value
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    return number if math.isfinite(number) else value


def _resolve_path(config: DataSourceConfig) -> Path:
    if not config.file_path:
        raise DataSourceConnectionError("File path is required")
    path = Path(config.file_path).expanduser()
    if not path.exists():
        raise DataSourceConnectionError(f"File not found: {path}")
    if not path.is_file():
        raise DataSourceConnectionError(f"Not a regular file: {path}")
    return path


class _FileAdapter(DataSourceAdapter):
    """Shared open/close/probe logic; subclasses implement ``_read``."""

    async def _open(self, config: DataSourceConfig, timeout: float) -> FileHandle:
        path = _resolve_path(config)
        return FileHandle(
            path=path,
            encoding=config.encoding or "utf-8",
            delimiter=config.options.get("delimiter", ","),
        )

    async def _close(self, handle: Any) -> None:
        # Nothing is held open between queries.
        return None

    async def _execute(self, handle: Any, query: Query) -> QueryResult:
        try:
            columns, rows = await self.run_blocking(self._read, handle)
        except FileNotFoundError as e:
            raise DataSourceConnectionError(f"File not found: {handle.path}", cause=e) from e
        except (OSError, UnicodeDecodeError) as e:
            raise QueryError(f"Failed to read file {handle.path}: {e}", cause=e) from e
        return QueryResult(columns=columns, rows=rows)

    async def _probe(self, config: DataSourceConfig, timeout: float) -> str:
        path = _resolve_path(config)
        size = path.stat().st_size
        return f"File accessible ({size} bytes)"

    @abstractmethod
    def _read(self, handle: FileHandle) -> tuple[list[str], list[dict[str, Any]]]:
        """Parse the whole file into ``(columns, rows)``."""


class CsvFileAdapter(_FileAdapter):
    """CSV files with a header row; numeric-looking cells become numbers."""

    kind = DataSourceType.CSV
    display_name = "CSV file"

    def _read(self, handle: FileHandle) -> tuple[list[str], list[dict[str, Any]]]:
        with open(handle.path, "r", encoding=handle.encoding, newline="") as f:
            reader = csv.DictReader(f, delimiter=handle.delimiter)
            rows = [
                {key: coerce_cell(value) for key, value in row.items() if key is not None}
                for row in reader
            ]
            columns = list(reader.fieldnames or []) if rows else []
        return columns, rows


class JsonFileAdapter(_FileAdapter):
    """JSON files: an array becomes rows, an object becomes a single row."""

    kind = DataSourceType.JSON
    display_name = "JSON file"

    def _read(self, handle: FileHandle) -> tuple[list[str], list[dict[str, Any]]]:
        with open(handle.path, "r", encoding=handle.encoding) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise QueryError(f"Invalid JSON in {handle.path}: {e}", cause=e) from e

        if isinstance(data, list):
            rows = [item if isinstance(item, dict) else {"value": item} for item in data]
        elif isinstance(data, dict):
            rows = [data] if data else []
        else:
            raise QueryError(f"Expected JSON array or object, got: {type(data).__name__}")
        columns = list(rows[0].keys()) if rows else []
        return columns, rows


__all__ = [
    "FileHandle",
    "coerce_cell",
    "CsvFileAdapter",
    "JsonFileAdapter",
]
