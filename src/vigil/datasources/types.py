"""Data source types: backend kinds, connection config, queries and results."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum
from typing import Any

from vigil.core.errors import InvalidConfigError

Scalar = str | int | float | bool | Decimal | None


class DataSourceType(str, Enum):
    """Built-in backend kinds."""

    MYSQL = "MYSQL"
    POSTGRESQL = "POSTGRESQL"
    REST_API = "REST_API"
    CSV = "CSV"
    JSON = "JSON"


_KIND_ALIASES = {
    "POSTGRES": DataSourceType.POSTGRESQL.value,
    "PG": DataSourceType.POSTGRESQL.value,
    "HTTP": DataSourceType.REST_API.value,
    "API": DataSourceType.REST_API.value,
    "REST": DataSourceType.REST_API.value,
}


def normalize_kind(kind: DataSourceType | str) -> str:
    """Case-insensitive kind identifier, with aliases folded to their canonical name."""
    if isinstance(kind, DataSourceType):
        return kind.value
    name = str(kind).strip().upper().replace("-", "_")
    return _KIND_ALIASES.get(name, name)


@dataclass
class DataSourceConfig:
    """
    Connection parameters for one data source.

    Different fields are used by different kinds; secrets are expected to be
    decrypted already. ``timeout`` is in seconds; None means the adapter
    default.
    """

    # Relational databases
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = None

    # HTTP API
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    api_key: str | None = None

    # Files
    file_path: str | None = None
    file_type: str | None = None  # "csv" | "json"; inferred from the extension if unset
    encoding: str = "utf-8"

    # Common
    timeout: float | None = None
    pool_size: int | None = None
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataSourceConfig:
        """Build from a mapping; camelCase keys (``filePath``, ``apiKey``) are accepted."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        options: dict[str, Any] = dict(data.get("options") or {})
        for key, value in data.items():
            if key == "options":
                continue
            name = _snake_case(key)
            if name == "user":
                name = "username"
            if name in known:
                kwargs[name] = value
            else:
                options[key] = value
        if kwargs.get("port") is not None:
            try:
                kwargs["port"] = int(kwargs["port"])
            except (TypeError, ValueError):
                raise InvalidConfigError("port", kwargs["port"]) from None
        if kwargs.get("timeout") is not None:
            try:
                kwargs["timeout"] = float(kwargs["timeout"])
            except (TypeError, ValueError):
                raise InvalidConfigError("timeout", kwargs["timeout"]) from None
        return cls(**kwargs, options=options)

    def redacted(self) -> dict[str, Any]:
        """Loggable view with secrets masked."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value in (None, {}, ""):
                continue
            if f.name in ("password", "api_key"):
                value = "***"
            elif f.name == "headers":
                value = {k: ("***" if k.lower() == "authorization" else v) for k, v in value.items()}
            result[f.name] = value
        return result


@dataclass(frozen=True)
class Query:
    """A statement plus ordered positional parameters.

    Interpretation depends on the backend: literal SQL for databases, a path
    or WHERE-clause mini-grammar for HTTP, ignored for files.
    """

    statement: str = ""
    parameters: tuple[Scalar, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))


@dataclass
class QueryResult:
    """Universal result shape.

    ``row_count == len(rows)``; ``columns`` is empty only if ``rows`` is empty.
    """

    columns: list[str]
    rows: list[dict[str, Any]]
    row_count: int = -1
    duration_ms: int = 0

    def __post_init__(self) -> None:
        if self.row_count < 0:
            self.row_count = len(self.rows)
        if self.row_count != len(self.rows):
            raise ValueError(f"row_count {self.row_count} does not match {len(self.rows)} rows")
        if self.rows and not self.columns:
            self.columns = list(self.rows[0].keys())

    @classmethod
    def empty(cls, duration_ms: int = 0) -> QueryResult:
        return cls(columns=[], rows=[], row_count=0, duration_ms=duration_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": list(self.columns),
            "rows": [dict(row) for row in self.rows],
            "row_count": self.row_count,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class TestResult:
    """Outcome of a short-lived connection probe."""

    __test__ = False  # not a pytest test class

    success: bool
    message: str
    latency_ms: int | None = None

    @classmethod
    def ok(cls, message: str, latency_ms: int | None = None) -> TestResult:
        return cls(success=True, message=message, latency_ms=latency_ms)

    @classmethod
    def fail(cls, message: str) -> TestResult:
        return cls(success=False, message=message or "Connection test failed")


def _snake_case(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


__all__ = [
    "Scalar",
    "DataSourceType",
    "normalize_kind",
    "DataSourceConfig",
    "Query",
    "QueryResult",
    "TestResult",
]
