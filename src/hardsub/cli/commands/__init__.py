"""Command registration utilities for the hardsub CLI."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from hardsub.cli.commands import replay
from hardsub.config.settings import Settings


def register_commands(app: typer.Typer, console: Console, settings: Optional[Settings] = None) -> None:
    """Attach command groups to the provided Typer application."""

    replay.register(app, console, settings)

    @app.callback(invoke_without_command=True)
    def main_callback(ctx: typer.Context) -> None:
        """Display a default message when no subcommand is provided."""

        if ctx.invoked_subcommand is None:
            console.print("[bold green]hardsub CLI ready for commands.[/bold green]")


__all__ = ["register_commands"]
