"""
Root Typer application for the vigil CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="vigil",
    help="vigil - threshold alerting over heterogeneous data sources.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("vigil")
        except PackageNotFoundError:
            from vigil import __version__ as v
        typer.echo(f"vigil {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override VIGIL_LOG_LEVEL."),
    log_json: bool = typer.Option(False, "--log-json", help="Emit JSON log lines."),
) -> None:
    """vigil CLI - test data sources and channels, evaluate rules."""
    from vigil.core.logging import configure_logging
    from vigil.core.settings import get_settings

    settings = get_settings()
    configure_logging(
        level=(log_level or settings.log_level).upper(),
        json_format=log_json or settings.log_format == "json",
    )


# ── Sub-command registration ─────────────────────────────────────────────

from vigil.cli.channel import app as channel_app  # noqa: E402
from vigil.cli.datasource import app as datasource_app  # noqa: E402
from vigil.cli.rule import app as rule_app  # noqa: E402

app.add_typer(datasource_app, name="datasource", help="Data source probes and ad-hoc queries.")
app.add_typer(channel_app, name="channel", help="Notification channel checks.")
app.add_typer(rule_app, name="rule", help="Alert rule evaluation.")
