"""Console notifier for development and dry runs."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.pretty import Pretty

from hookrelay.core.logging import get_logger

logger = get_logger(__name__)


class ConsoleNotifier:
    """Prints payloads to the terminal instead of sending them."""

    def __init__(self, name: str = "console", *, console: Console | None = None):
        self._name = name
        self._console = console or Console(stderr=True)
        self.sent: list[Any] = []

    @property
    def destination_key(self) -> str:
        return self._name

    async def send(self, payload: Any) -> None:
        self.sent.append(payload)
        self._console.print(f"[bold cyan]\\[{self._name}][/bold cyan]", Pretty(payload))
        logger.debug("notifier.console", destination=self._name)
