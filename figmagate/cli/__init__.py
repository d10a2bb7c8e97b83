"""Figmagate CLI - Command-line entry point and transport bootstrap."""

from figmagate.cli.main import StartupError, cli, main, start

__all__ = ["StartupError", "cli", "main", "start"]
