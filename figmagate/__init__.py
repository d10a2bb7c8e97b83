"""
Figmagate - Figma design data for tool-calling agents.

A small host-tool protocol server that exposes two tools over stdio:

- get_document_data: fetch a Figma file or node and return a simplified,
  deduplicated JSON view of it
- download_images: export rendered nodes and image fills to a local directory

Architecture:
- Config comes from environment, .env and an optional figmagate.yaml
- Tool calls flow channel -> gateway -> Figma client -> simplifier -> channel
- Nothing is persisted beyond the downloaded assets
"""

__version__ = "0.1.0"
__license__ = "MIT"

from figmagate.gateway.executor import ToolGateway
from figmagate.validation.config import Config, ConfigError, ServerConfig

__all__ = [
    "Config",
    "ConfigError",
    "ServerConfig",
    "ToolGateway",
    "__version__",
]
