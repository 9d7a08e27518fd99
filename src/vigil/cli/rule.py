"""
CLI: ``vigil rule`` - evaluate alert rules outside the scheduler.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from vigil.cli.utils import console, fail, load_config_file, output_json, print_dict, run
from vigil.core.errors import VigilError

app = typer.Typer(no_args_is_help=True)


def _source_definition(data: dict[str, Any]) -> tuple[str | None, str, dict[str, Any]]:
    """Split a data source file into ``(id, kind, connection config)``.

    Accepts ``{id, type|kind, config: {...}}`` or a flat mapping with a
    ``type``/``kind`` key next to the connection fields.
    """
    kind = data.get("type") or data.get("kind")
    if not kind:
        fail("Data source definition needs a 'type'")
    if isinstance(data.get("config"), dict):
        return data.get("id"), str(kind), data["config"]
    connection = {k: v for k, v in data.items() if k not in ("id", "type", "kind", "name")}
    return data.get("id"), str(kind), connection


@app.command("evaluate")
def evaluate_rule(
    rule_file: Path = typer.Option(..., "--rule", "-r", help="YAML/JSON rule definition"),
    source_file: Path = typer.Option(..., "--datasource", "-s", help="YAML/JSON data source definition"),
    times: int = typer.Option(1, "--times", "-n", min=1, help="Number of consecutive evaluations"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Evaluate a rule against a data source and show each outcome."""
    from vigil.alerting import AlertEvaluator, AlertRule
    from vigil.core.settings import get_settings
    from vigil.datasources import DataSourceConfig, DataSourceRegistry

    settings = get_settings()
    try:
        rule = AlertRule.from_dict(load_config_file(rule_file))
        source_id, kind, connection = _source_definition(load_config_file(source_file))
        source_config = DataSourceConfig.from_dict(connection)
    except VigilError as e:
        fail(e.message)

    source_id = rule.data_source_id or source_id
    if not source_id:
        fail("Rule has no dataSourceId and the data source definition has no id")

    registry = DataSourceRegistry.with_defaults(settings)
    evaluator = AlertEvaluator(registry, deadline=settings.evaluation_deadline_seconds)

    async def _evaluate():
        await registry.connect(kind, source_config, source_id=source_id)
        try:
            return [await evaluator.evaluate(rule) for _ in range(times)]
        finally:
            await registry.disconnect_all()

    try:
        outcomes = run(_evaluate())
    except VigilError as e:
        fail(f"{type(e).__name__}: {e.message}")

    history = evaluator.get_history(rule.id)
    if json_out:
        output_json({"outcomes": [o.to_dict() for o in outcomes], "history": history.to_dict() if history else None})
        return

    for index, outcome in enumerate(outcomes, 1):
        state = "[bold red]FIRING[/bold red]" if outcome.is_firing else "[green]ok[/green]"
        value = "N/A" if outcome.value is None else outcome.value
        console.print(f"#{index} {state} value={value} [dim]({outcome.value_state.value})[/dim]")
        if outcome.message:
            console.print(f"   {outcome.message}")
        if outcome.error:
            console.print(f"   [yellow]{outcome.error}[/yellow]")
    if history is not None:
        print_dict(history.to_dict(), title="History")
