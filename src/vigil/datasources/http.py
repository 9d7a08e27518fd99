"""HTTP API data source adapter.

Statements come in two shapes:

* a literal path (``/metrics/cpu``) - fetched relative to the base URL;
* a small SQL-like string (``SELECT * WHERE status = 'active' AND age = 30``)
  whose WHERE clause is translated into query-string parameters. ``IN (...)``
  on the right-hand side becomes a list parameter. ``?`` placeholders are
  filled from ``Query.parameters`` first.

Responses are normalized into the universal result shape by
:func:`normalize_payload`.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Any

import httpx

from vigil.core.errors import DataSourceConnectionError, OperationTimeoutError, QueryError

from .base import DataSourceAdapter
from .types import DataSourceConfig, DataSourceType, Query, QueryResult, Scalar

_WHERE_RE = re.compile(r"\bWHERE\s+", re.IGNORECASE)
_AND_RE = re.compile(r"\s+AND\s+", re.IGNORECASE)
_CONDITION_RE = re.compile(r"^\s*([\w.\-]+)\s*(=|\bIN\b)\s*(.+?)\s*$", re.IGNORECASE | re.DOTALL)
_TRAILING_CLAUSE_RE = re.compile(r"\s+(ORDER\s+BY|LIMIT)\b", re.IGNORECASE)
_COMMA_RE = re.compile(r",")
_QUOTED_RE = re.compile(r"'[^']*'|\"[^\"]*\"")


def is_sql_like(statement: str) -> bool:
    """True when the statement should be parsed rather than used as a path."""
    return statement.lstrip().upper().startswith("SELECT") or "?" in statement


def bind_placeholders(statement: str, parameters: tuple[Scalar, ...] | list[Scalar]) -> str:
    """Replace each ``?`` with the next parameter, in order.

    Placeholders without a matching parameter are left untouched.
    """
    values = iter(parameters)

    def substitute(match: re.Match[str]) -> str:
        try:
            value = next(values)
        except StopIteration:
            return match.group(0)
        if isinstance(value, str):
            return f"'{value}'"
        return "" if value is None else str(value)

    return re.sub(r"\?", substitute, statement)


def _strip_quotes(value: str) -> str:
    return value.strip().strip("'\"")


def _unquoted_matches(pattern: re.Pattern[str], text: str) -> Iterator[re.Match[str]]:
    """Matches of ``pattern`` that do not start inside a quoted literal."""
    spans = [m.span() for m in _QUOTED_RE.finditer(text)]
    for match in pattern.finditer(text):
        if not any(start <= match.start() < end for start, end in spans):
            yield match


def _split_unquoted(pattern: re.Pattern[str], text: str) -> list[str]:
    parts: list[str] = []
    position = 0
    for match in _unquoted_matches(pattern, text):
        parts.append(text[position : match.start()])
        position = match.end()
    parts.append(text[position:])
    return parts


def parse_where_params(statement: str) -> dict[str, str | list[str]]:
    """Translate ``WHERE k = v [AND k2 = v2]`` into query-string parameters.

    Values are always strings; ``k IN ('a', 'b')`` yields ``{"k": ["a", "b"]}``.
    Conditions that do not match ``key = value`` or ``key IN (...)`` are skipped.
    ``AND``, commas and ``ORDER BY`` / ``LIMIT`` inside quoted literals are
    part of the value, so ``name = 'Tom AND Jerry'`` stays one condition.
    """
    params: dict[str, str | list[str]] = {}
    text = statement.strip().rstrip(";")
    where = next(_unquoted_matches(_WHERE_RE, text), None)
    if where is None:
        return params

    clause = text[where.end() :]
    trailing = next(_unquoted_matches(_TRAILING_CLAUSE_RE, clause), None)
    if trailing is not None:
        clause = clause[: trailing.start()]
    for condition in _split_unquoted(_AND_RE, clause):
        parsed = _CONDITION_RE.match(condition)
        if not parsed:
            continue
        key, operator, raw = parsed.groups()
        if operator.upper() == "IN":
            items = raw.strip()
            if items.startswith("(") and items.endswith(")"):
                items = items[1:-1]
            params[key] = [_strip_quotes(item) for item in _split_unquoted(_COMMA_RE, items) if item.strip()]
        else:
            params[key] = _strip_quotes(raw)
    return params


def normalize_payload(data: Any) -> tuple[list[str], list[dict[str, Any]]]:
    """Map a decoded JSON response onto ``(columns, rows)``.

    * array of objects -> rows = array, columns = keys of the first element
    * ``{"data": [...], "columns"?: [...]}`` -> rows = data, columns from the
      field when present, else keys of the first row
    * any other object -> one row whose columns are its own keys
    * scalars (and arrays of scalars) -> rows of ``{"value": x}``
    """
    if isinstance(data, list):
        rows = [item if isinstance(item, dict) else {"value": item} for item in data]
        columns = list(rows[0].keys()) if rows else []
        return columns, rows

    if isinstance(data, dict):
        inner = data.get("data")
        if isinstance(inner, list):
            rows = [item if isinstance(item, dict) else {"value": item} for item in inner]
            declared = data.get("columns")
            if isinstance(declared, list) and declared:
                columns = [str(c) for c in declared]
            else:
                columns = list(rows[0].keys()) if rows else []
            return columns, rows
        if not data:
            return [], []
        return list(data.keys()), [data]

    if data is None:
        return [], []
    return ["value"], [{"value": data}]


def _client_headers(config: DataSourceConfig) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    headers.update(config.headers or {})
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    return headers


class HttpApiAdapter(DataSourceAdapter):
    """REST/HTTP adapter; the handle is an ``httpx.AsyncClient`` per data source."""

    kind = DataSourceType.REST_API
    display_name = "REST API"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self._transport = transport

    def _build_client(self, config: DataSourceConfig, timeout: float) -> httpx.AsyncClient:
        if not config.url:
            raise DataSourceConnectionError("API URL is required")
        return httpx.AsyncClient(
            base_url=config.url,
            headers=_client_headers(config),
            timeout=timeout,
            transport=self._transport,
        )

    async def _open(self, config: DataSourceConfig, timeout: float) -> Any:
        return self._build_client(config, timeout)

    async def _close(self, handle: Any) -> None:
        await handle.aclose()

    async def _execute(self, handle: Any, query: Query) -> QueryResult:
        statement = query.statement or ""
        try:
            if is_sql_like(statement):
                params = parse_where_params(bind_placeholders(statement, query.parameters))
                response = await handle.get("", params=params)
            else:
                path = statement.strip()
                response = await handle.get(path if path.startswith("/") or not path else f"/{path}")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise QueryError(
                f"HTTP {e.response.status_code} from {e.request.url}", cause=e
            ).with_context(url=str(e.request.url), http_status=e.response.status_code) from e
        except httpx.TimeoutException as e:
            raise OperationTimeoutError(f"HTTP request timed out: {e}", cause=e) from e
        except httpx.HTTPError as e:
            raise DataSourceConnectionError(f"HTTP request failed: {e}", cause=e) from e
        except ValueError as e:
            raise QueryError(f"Response is not valid JSON: {e}", cause=e) from e

        columns, rows = normalize_payload(data)
        return QueryResult(columns=columns, rows=rows)

    async def _probe(self, config: DataSourceConfig, timeout: float) -> str:
        async with self._build_client(config, timeout) as client:
            response = await client.get("")
        if not response.is_success:
            raise DataSourceConnectionError(f"HTTP {response.status_code}: {response.reason_phrase}")
        return f"API connection successful (HTTP {response.status_code})"


__all__ = [
    "HttpApiAdapter",
    "is_sql_like",
    "bind_placeholders",
    "parse_where_params",
    "normalize_payload",
]
