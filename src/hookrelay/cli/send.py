"""
CLI: ``hookrelay send`` - push one test notification through a one-shot engine.

Useful to check that a webhook URL accepts deliveries and to watch the
retry/breaker behaviour configured through ``HOOKRELAY_*`` settings.
"""

from __future__ import annotations

import asyncio
from typing import Any

import typer

from hookrelay.cli.utils import console, err_console, key_value_table


def _discord_text(event: Any) -> str:
    return f"**{event.signature}** returned `{event.status_code}`"


async def _send_once(
    url: str,
    *,
    method: str,
    uri: str,
    status: int,
    discord: bool,
    dry_run: bool,
) -> dict[str, Any]:
    from hookrelay.core.models import InspectionRule, NotificationEvent
    from hookrelay.core.settings import get_settings
    from hookrelay.dispatch import Destination, DispatchEngine
    from hookrelay.notifiers import ConsoleNotifier, DiscordNotifier, WebhookNotifier

    settings = get_settings()
    config = settings.to_engine_config()

    if dry_run:
        notifier: Any = ConsoleNotifier("dry-run", console=console)
    elif discord:
        notifier = DiscordNotifier(url)
    else:
        notifier = WebhookNotifier(url)

    options: dict[str, Any] = {"rule": InspectionRule.all()}
    if discord and not dry_run:
        options["render"] = _discord_text
    destination = Destination.for_notifier(notifier, **options)

    engine = DispatchEngine(config)
    engine.add_destination(destination)
    try:
        scheduled = engine.notify(NotificationEvent(method, uri, status))
        await engine.runner.drain(config.shutdown_timeout)
        state = engine.breaker_state(destination.key)
        stats = engine.metrics()["tasks"].get(destination.key, {})
    finally:
        await engine.shutdown()
        if hasattr(notifier, "aclose"):
            await notifier.aclose()

    return {
        "destination": destination.key,
        "scheduled": scheduled,
        "succeeded": stats.get("succeeded", 0),
        "failed": stats.get("failed", 0),
        "circuit": state.state.value if state else None,
        "consecutive_failures": state.consecutive_failures if state else None,
    }


def send(
    url: str = typer.Argument(..., help="Webhook URL to deliver to"),
    method: str = typer.Option("GET", "--method", "-m", help="HTTP method of the test event"),
    uri: str = typer.Option("https://example.com/health", "--uri", "-u", help="URI of the test event"),
    status: int = typer.Option(500, "--status", "-s", help="Status code of the test event"),
    discord: bool = typer.Option(False, "--discord", help="Treat URL as a Discord webhook"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the payload instead of sending"),
) -> None:
    """Send one test notification and report the outcome."""
    result = asyncio.run(
        _send_once(url, method=method, uri=uri, status=status, discord=discord, dry_run=dry_run)
    )

    console.print(key_value_table(result, title="Delivery", key_header="Field"))

    if result["failed"] or not result["succeeded"]:
        err_console.print("[bold red]Delivery failed[/bold red]")
        raise typer.Exit(1)
    console.print("[green]✓ Delivered[/green]")
