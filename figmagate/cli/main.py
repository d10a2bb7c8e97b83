"""
Figmagate CLI - Start the tool server.

Run `figmagate` to serve the Figma tools over stdin/stdout.
stdout carries the protocol, so everything human-readable goes to stderr.
"""

import asyncio
import logging
import sys
from typing import Any, Optional

import click
from rich.console import Console

from figmagate import __version__
from figmagate.figma.client import FigmaService
from figmagate.gateway.executor import ToolGateway
from figmagate.gateway.server import McpServer
from figmagate.gateway.transport import StdioChannel
from figmagate.identity import Connector, DirectConnector, SecureIdentity
from figmagate.tools import register_figma_tools
from figmagate.validation.config import HTTP_MODE, STDIO_MODE, ConfigError, ServerConfig, load_config

console = Console(stderr=True)

LOG_FORMAT = "[%(asctime)s] [figmagate] [%(levelname)s] %(name)s: %(message)s"


class StartupError(Exception):
    """Raised when the server cannot be started."""


def build_server(service: FigmaService, log: Optional[logging.Logger] = None) -> McpServer:
    """Gateway with the Figma tools registered, wrapped in a protocol server."""
    gateway = ToolGateway(log=log or logging.getLogger("figmagate"))
    register_figma_tools(gateway, service)
    return McpServer(gateway)


def connect_server(
    config: ServerConfig,
    service: FigmaService,
    channel: Any = None,
    connector: Optional[Connector] = None,
) -> McpServer:
    """
    Build the server and attach it to a channel for ``config.mode``.

    Raises:
        StartupError: for the unimplemented http mode and for unknown modes.
    """
    if config.mode == HTTP_MODE:
        raise StartupError("HTTP server mode not yet implemented")
    if config.mode != STDIO_MODE:
        raise StartupError(f"Unsupported server mode: {config.mode}")

    server = build_server(service)
    connector = connector or DirectConnector()
    connector.secure_connect(server, channel or StdioChannel(), SecureIdentity.from_config(config))
    return server


async def start(
    config: ServerConfig,
    channel: Any = None,
    connector: Optional[Connector] = None,
    service: Optional[FigmaService] = None,
) -> None:
    """Serve until the channel closes."""
    service = service or FigmaService(config.figma_api_key)
    try:
        server = connect_server(config, service, channel, connector)
        await server.serve()
    finally:
        await service.aclose()


def configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {level_name}")
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")


@click.command()
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option("--mode", "-m", default=None, help="Transport mode: stdio (default) or http")
@click.option("--log-level", default=None, help="Log level for stderr and forwarded logs")
def cli(version: bool, mode: Optional[str], log_level: Optional[str]) -> None:
    """Serve Figma design data to tool-calling clients."""
    if version:
        console.print(f"figmagate {__version__}")
        return

    try:
        config = load_config(mode)
        configure_logging(log_level or config.log_level)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    try:
        asyncio.run(start(config))
    except StartupError as e:
        console.print(f"[red]Failed to start server: {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
