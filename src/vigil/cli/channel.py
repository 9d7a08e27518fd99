"""
CLI: ``vigil channel`` - notification channel checks.
"""

from __future__ import annotations

from pathlib import Path

import typer

from vigil.cli.utils import console, err_console, fail, load_config_file, run
from vigil.core.errors import VigilError

app = typer.Typer(no_args_is_help=True)


@app.command("test")
def test_channel(
    config: Path = typer.Option(..., "--config", "-c", help="YAML/JSON channel definition"),
) -> None:
    """Send a synthetic info-level notification through a channel."""
    from vigil.core.settings import get_settings
    from vigil.notifications import NotificationChannel, NotificationDispatcher, make_test_alert

    try:
        channel = NotificationChannel.from_dict(load_config_file(config))
    except VigilError as e:
        fail(e.message)

    if not channel.enabled:
        fail(f"Channel {channel.name!r} is disabled")

    async def _send():
        async with NotificationDispatcher.from_settings(get_settings()) as dispatcher:
            return await dispatcher.deliver(channel, make_test_alert())

    result = run(_send())
    if result.success:
        console.print(f"[green]✓[/green] Test notification delivered to {channel.name} ({channel.type})")
    else:
        err_console.print(f"[bold red]✗[/bold red] {channel.name}: {result.message}")
        raise typer.Exit(code=1)
