"""
CLI layer for vigil.

A Typer application whose commands wire the data source registry, the
evaluation engine and the notification dispatcher together for one-off
checks from a terminal. No business logic lives here.

Entry point::

    vigil --help
"""

from vigil.cli.app import app

__all__ = ["app"]
