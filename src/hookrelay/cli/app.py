"""
Root Typer application for the hookrelay CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="hookrelay",
    help="hookrelay - resilient, non-blocking webhook notification dispatch.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from hookrelay import __version__

        typer.echo(f"hookrelay {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to HOOKRELAY_LOG_LEVEL).",
    ),
) -> None:
    """hookrelay CLI - inspect configuration and send test notifications."""
    from pydantic import ValidationError

    from hookrelay.core.logging import configure_logging
    from hookrelay.core.settings import get_settings

    try:
        settings = get_settings()
    except ValidationError:
        # Reported by the sub-command that needs the settings
        configure_logging(log_level or "INFO")
        return
    configure_logging(log_level or settings.log_level, json_format=settings.log_json)


# ── Sub-command registration ─────────────────────────────────────────────

from hookrelay.cli.config import app as config_app  # noqa: E402
from hookrelay.cli.send import send  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration inspection.")
app.command("send")(send)
