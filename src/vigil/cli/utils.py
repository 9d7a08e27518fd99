"""
CLI utility helpers: config file loading and output formatting.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from dataclasses import asdict
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import typer
import yaml
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


# ── Config files ─────────────────────────────────────────────────────────


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON mapping; exits with code 1 on any problem."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        fail(f"Cannot read {path}: {e}")

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        fail(f"Invalid config file {path}: {e}")

    if not isinstance(data, dict):
        fail(f"Config file {path} must contain a mapping")
    return data


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous command."""
    return asyncio.run(coro)


# ── Output helpers ───────────────────────────────────────────────────────


def fail(message: str, code: int = 1) -> NoReturn:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=code)


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / dict / object with ``to_dict`` to a plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_json(obj: Any) -> None:
    payload = [_to_dict(o) for o in obj] if isinstance(obj, list | tuple) else _to_dict(obj)
    console.print_json(json.dumps(payload, default=str))


def print_rows(columns: list[str], rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render query rows as a Rich table."""
    if not rows:
        console.print("[dim]No rows.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if row.get(col) is None else str(row.get(col)) for col in columns))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
