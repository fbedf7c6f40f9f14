"""pipespine command-line interface (typer + rich)."""

from pipespine.cli.app import app

__all__ = ["app"]
