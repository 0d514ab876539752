"""hookrelay command-line interface."""

from hookrelay.cli.app import app

__all__ = ["app"]
