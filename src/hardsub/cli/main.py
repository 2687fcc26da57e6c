"""Entry point for the ``hardsub`` command."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from hardsub.cli.commands import register_commands
from hardsub.config.settings import Settings


def create_app(console: Optional[Console] = None, settings: Optional[Settings] = None) -> typer.Typer:
    """Build the Typer application.

    ``settings`` pins the configuration the commands run with; when omitted each
    command reads the cached environment settings at invocation time.
    """

    app = typer.Typer(add_completion=False, rich_markup_mode="rich")
    register_commands(app, console or Console(), settings)
    return app


def main() -> None:
    create_app()()


__all__ = ["create_app", "main"]
