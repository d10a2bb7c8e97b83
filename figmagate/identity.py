"""
Figmagate Identity - Secure-transport connection of the server to its channel.

The server identifies itself to the host with a workload identity (API key,
name, trust domain and host metadata). The handshake itself belongs to the
connector, so deployments can plug in their own secure-transport client.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from figmagate.validation.config import ServerConfig, mask_api_key

logger = logging.getLogger(__name__)


@dataclass
class SecureIdentity:
    """Identity presented when the server connects."""

    api_key: str
    name: str
    trust_domain: str = "gptapps.ai"
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: ServerConfig) -> "SecureIdentity":
        return cls(
            api_key=config.identity_api_key,
            name=config.server_name,
            trust_domain=config.trust_domain,
            metadata={"hostname": config.hostname, "environment": config.environment},
        )

    def __repr__(self) -> str:
        return (
            f"SecureIdentity(name={self.name!r}, trust_domain={self.trust_domain!r}, "
            f"api_key={mask_api_key(self.api_key)!r})"
        )


class Connector(ABC):
    """Attaches a server to a channel under a secure identity."""

    @abstractmethod
    def secure_connect(self, server: Any, channel: Any, identity: SecureIdentity) -> None:
        """
        Connect ``server`` to ``channel``.

        Args:
            server: An McpServer with its tools registered.
            channel: The channel to serve on.
            identity: Identity to present to the host.
        """
        pass


class DirectConnector(Connector):
    """Connects without a handshake; the identity is only recorded in the log."""

    def secure_connect(self, server: Any, channel: Any, identity: SecureIdentity) -> None:
        logger.info(
            "Connecting %s in trust domain %s (key %s, hostname %s, environment %s)",
            identity.name,
            identity.trust_domain,
            mask_api_key(identity.api_key),
            identity.metadata.get("hostname", "unknown"),
            identity.metadata.get("environment", "development"),
        )
        server.connect(channel)
