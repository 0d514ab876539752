"""
CLI utility helpers - shared consoles and output formatting.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def key_value_table(rows: dict[str, Any], *, title: str = "", key_header: str = "Setting") -> Table:
    """Two-column table of ``rows``."""
    table = Table(title=title or None)
    table.add_column(key_header, style="cyan")
    table.add_column("Value")
    for key, value in rows.items():
        table.add_row(key, "-" if value is None else str(value))
    return table
