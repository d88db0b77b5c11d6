"""Entry point for ``python -m chatrelay``."""

from chatrelay.cli.commands import app

if __name__ == "__main__":
    app()
