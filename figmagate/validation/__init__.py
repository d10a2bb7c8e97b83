"""
Figmagate validation module.

This module provides configuration loading and validation.
"""

from figmagate.validation.config import Config, ConfigError, ServerConfig, mask_api_key

__all__ = ["Config", "ConfigError", "ServerConfig", "mask_api_key"]
