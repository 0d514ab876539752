"""
CLI: ``hookrelay config`` - inspect the effective configuration.
"""

from __future__ import annotations

import typer

from hookrelay.cli.utils import console, err_console, key_value_table

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show current configuration."""
    from pydantic import ValidationError

    from hookrelay.core.settings import get_settings

    try:
        settings = get_settings(_force_reload=True)
    except ValidationError as e:
        err_console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(1) from e

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"HOOKRELAY_{key.upper()}={'' if value is None else value}")
        return

    if format != "table":
        err_console.print(f"[red]Unknown format:[/red] {format}")
        raise typer.Exit(2)

    console.print(key_value_table(settings.model_dump(), title="hookrelay settings"))
