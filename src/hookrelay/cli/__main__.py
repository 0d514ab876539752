"""Allow ``python -m hookrelay.cli``."""

from hookrelay.cli.app import app

if __name__ == "__main__":
    app()
