"""
Figmagate Configuration - Configuration loading and validation.

This module provides the Config class, which resolves the server settings
from (lowest to highest precedence) built-in defaults, an optional
figmagate.yaml file, a local .env file and the process environment.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError


class ConfigError(Exception):
    """Raised when there's a configuration error."""

    pass


STDIO_MODE = "stdio"
HTTP_MODE = "http"


class ServerConfig(BaseModel):
    """Resolved settings for one server process."""

    figma_api_key: str
    identity_api_key: str
    server_name: str
    mode: str = STDIO_MODE
    port: int = 0
    hostname: str = "unknown"
    environment: str = "development"
    trust_domain: str = "gptapps.ai"
    log_level: str = "INFO"

    @property
    def is_stdio(self) -> bool:
        return self.mode == STDIO_MODE


def mask_api_key(key: str) -> str:
    """Hide all but the last four characters of a credential."""
    if len(key) <= 4:
        return "****"
    return f"****{key[-4:]}"


class Config:
    """
    Figmagate configuration manager.

    Handles loading and validating configuration from:
    - File: figmagate.yaml (nearest one walking up from the working directory)
    - Dotenv: .env in the working directory
    - Environment: FIGMA_API_KEY, AZTP_API_KEY, MCP_NAME, SERVER_MODE, ...

    Environment variables override the file.

    Example:
        >>> config = Config.load()
        >>> settings = config.server_config()
        >>> settings.port
        0
    """

    CONFIG_FILENAME = "figmagate.yaml"
    DEFAULT_PORT = 3000

    # field name -> environment variable
    ENV_VARS = {
        "figma_api_key": "FIGMA_API_KEY",
        "identity_api_key": "AZTP_API_KEY",
        "server_name": "MCP_NAME",
        "mode": "SERVER_MODE",
        "port": "PORT",
        "hostname": "HOSTNAME",
        "environment": "ENVIRONMENT",
        "log_level": "FIGMAGATE_LOG_LEVEL",
    }

    REQUIRED = ("figma_api_key", "identity_api_key", "server_name")

    def __init__(
        self,
        file_config: Optional[Dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize Config.

        Args:
            file_config: Settings read from figmagate.yaml.
            environ: Environment mapping; defaults to os.environ.
        """
        self._file_config = file_config or {}
        self._environ = os.environ if environ is None else environ

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "Config":
        """
        Load configuration from default locations.

        The .env file is applied to os.environ once, without overriding
        variables that are already set.

        Returns:
            Config instance with loaded configuration.
        """
        load_dotenv(dotenv_path=env_file or Path.cwd() / ".env", override=False)
        file_config = cls._load_yaml(cls._find_config_file())
        return cls(file_config=file_config)

    @classmethod
    def _load_yaml(cls, path: Optional[Path]) -> Dict[str, Any]:
        """Load YAML file if it exists."""
        if path is None or not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except Exception as e:
            raise ConfigError(f"Failed to load config from {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find figmagate.yaml by walking up the directory tree."""
        current = Path.cwd()
        while current != current.parent:
            config_path = current / cls.CONFIG_FILENAME
            if config_path.exists():
                return config_path
            current = current.parent
        return None

    def get_value(self, field: str) -> Optional[str]:
        """Environment first, then the config file."""
        env_var = self.ENV_VARS.get(field)
        if env_var:
            value = self._environ.get(env_var)
            if value:
                return value

        value = self._file_config.get(field)
        return None if value is None else str(value)

    def server_config(self, mode: Optional[str] = None) -> ServerConfig:
        """
        Resolve and validate the server settings.

        Args:
            mode: Transport mode; overrides SERVER_MODE when given.

        Raises:
            ConfigError: if a mandatory credential is missing or a value is invalid.
        """
        values: Dict[str, Any] = {}
        for field in self.REQUIRED:
            value = self.get_value(field)
            if not value:
                raise ConfigError(f"{self.ENV_VARS[field]} is not set")
            values[field] = value

        for field in ("hostname", "environment", "trust_domain", "log_level"):
            value = self.get_value(field)
            if value:
                values[field] = value

        values["mode"] = mode or self.get_value("mode") or STDIO_MODE
        values["port"] = self._resolve_port(values["mode"] == STDIO_MODE)

        try:
            return ServerConfig(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

    def _resolve_port(self, is_stdio: bool) -> int:
        if is_stdio:
            return 0

        raw = self.get_value("port")
        if not raw:
            return self.DEFAULT_PORT
        try:
            port = int(raw)
        except ValueError:
            raise ConfigError(f"PORT must be an integer, got {raw!r}")
        if not 0 < port < 65536:
            raise ConfigError(f"PORT out of range: {port}")
        return port


def load_config(mode: Optional[str] = None) -> ServerConfig:
    """Load settings from the default locations (see Config.load)."""
    return Config.load().server_config(mode)
