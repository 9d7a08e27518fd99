"""
CLI: ``vigil datasource`` - probe and query data sources.
"""

from __future__ import annotations

from pathlib import Path

import typer

from vigil.cli.utils import console, err_console, fail, load_config_file, output_json, print_rows, run
from vigil.core.errors import VigilError

app = typer.Typer(no_args_is_help=True)


@app.command("test")
def test_source(
    kind: str = typer.Argument(..., help="Backend kind: mysql, postgresql, rest_api, csv, json"),
    config: Path = typer.Option(..., "--config", "-c", help="YAML/JSON connection config"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Probe a data source with a short-lived connection."""
    from vigil.core.settings import get_settings
    from vigil.datasources import DataSourceConfig, DataSourceRegistry

    try:
        source_config = DataSourceConfig.from_dict(load_config_file(config))
    except VigilError as e:
        fail(e.message)

    registry = DataSourceRegistry.with_defaults(get_settings())
    result = run(registry.test(kind, source_config))

    if json_out:
        output_json(result)
    elif result.success:
        latency = f" [dim]({result.latency_ms} ms)[/dim]" if result.latency_ms is not None else ""
        console.print(f"[green]✓[/green] {result.message}{latency}")
    else:
        err_console.print(f"[bold red]✗[/bold red] {result.message}")

    if not result.success:
        raise typer.Exit(code=1)


@app.command("query")
def query_source(
    kind: str = typer.Argument(..., help="Backend kind"),
    statement: str = typer.Argument(..., help="SQL, HTTP path or WHERE clause; ignored for files"),
    config: Path = typer.Option(..., "--config", "-c", help="YAML/JSON connection config"),
    params: list[str] = typer.Option([], "--param", "-p", help="Positional parameter (repeatable)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Connect, run one query, print the rows and disconnect."""
    from vigil.core.settings import get_settings
    from vigil.datasources import DataSourceConfig, DataSourceRegistry, Query
    from vigil.datasources.file import coerce_cell

    try:
        source_config = DataSourceConfig.from_dict(load_config_file(config))
    except VigilError as e:
        fail(e.message)

    registry = DataSourceRegistry.with_defaults(get_settings())
    query = Query(statement=statement, parameters=tuple(coerce_cell(p) for p in params))

    async def _query():
        await registry.connect(kind, source_config)
        try:
            return await registry.query(kind, query)
        finally:
            await registry.disconnect_all()

    try:
        result = run(_query())
    except VigilError as e:
        fail(f"{type(e).__name__}: {e.message}")

    if json_out:
        output_json(result)
        return
    print_rows(result.columns, result.rows, title=f"{kind} query")
    console.print(f"[dim]{result.row_count} row(s) in {result.duration_ms} ms[/dim]")
