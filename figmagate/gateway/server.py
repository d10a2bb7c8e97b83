"""
Host-tool protocol server.

Speaks JSON-RPC 2.0 over a channel and routes ``tools/*`` requests to a
ToolGateway. Supported methods::

    initialize, notifications/initialized, ping,
    tools/list, tools/call, logging/setLevel
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from figmagate import __version__
from figmagate.gateway.executor import ToolGateway
from figmagate.gateway.schema import InvocationRequest
from figmagate.gateway.transport import ChannelError

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

# protocol level names <-> logging levels
LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


class ProtocolError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code


class ChannelLogHandler(logging.Handler):
    """Forwards log records to the client as ``notifications/message``."""

    def __init__(self, channel: Any, level: int = logging.INFO):
        super().__init__(level)
        self.channel = channel

    @staticmethod
    def level_name(levelno: int) -> str:
        if levelno >= logging.CRITICAL:
            return "critical"
        if levelno >= logging.ERROR:
            return "error"
        if levelno >= logging.WARNING:
            return "warning"
        if levelno >= logging.INFO:
            return "info"
        return "debug"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.channel.send({
                "jsonrpc": "2.0",
                "method": "notifications/message",
                "params": {
                    "level": self.level_name(record.levelno),
                    "logger": record.name,
                    "data": self.format(record),
                },
            })
        except Exception:
            self.handleError(record)


class McpServer:
    """
    Serves one gateway over one channel.

    When ``forward_logs`` is set, a ChannelLogHandler is installed on the
    gateway's logger for as long as the channel is connected.
    """

    def __init__(self, gateway: ToolGateway, name: str = "Figma MCP Server", forward_logs: bool = True):
        self.gateway = gateway
        self.name = name
        self.forward_logs = forward_logs
        self._log_handler: Optional[ChannelLogHandler] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def connect(self, channel: Any) -> None:
        self.gateway.attach(channel)
        if self.forward_logs:
            self._log_handler = ChannelLogHandler(channel)
            self.gateway.logger.addHandler(self._log_handler)
        self.gateway.start_serving()
        self.gateway.logger.info("Server connected and ready to process requests")

    async def serve(self) -> None:
        """Answer requests until the channel reaches end of stream."""
        channel = self.gateway.channel
        try:
            while True:
                line = await channel.receive()
                if line is None:
                    break
                response = await self.handle_message(line)
                if response is not None:
                    channel.send(response)
        except ChannelError as exc:
            self._detach_log_handler()
            self.gateway.logger.error("Channel failed: %s", exc)
        finally:
            self.stop()

    def stop(self) -> None:
        self._detach_log_handler()
        self.gateway.stop()

    def _detach_log_handler(self) -> None:
        if self._log_handler is not None:
            self.gateway.logger.removeHandler(self._log_handler)
            self._log_handler = None

    # ── JSON-RPC ──────────────────────────────────────────────────────────

    async def handle_message(self, line: str) -> Optional[Dict[str, Any]]:
        """Process one raw message; returns the response, or None for notifications."""
        try:
            message = json.loads(line)
        except json.JSONDecodeError as exc:
            return self._error(None, PARSE_ERROR, f"Parse error: {exc}")

        if not isinstance(message, dict) or not isinstance(message.get("method"), str):
            return self._error(message.get("id") if isinstance(message, dict) else None,
                               INVALID_REQUEST, "Invalid request")

        request_id = message.get("id")
        is_notification = "id" not in message
        try:
            result = await self.dispatch(message["method"], message.get("params") or {})
        except ProtocolError as exc:
            return None if is_notification else self._error(request_id, exc.code, str(exc))

        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def dispatch(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(params, dict):
            raise ProtocolError(INVALID_PARAMS, "params must be an object")

        if method == "initialize":
            return {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "logging": {}},
                "serverInfo": {"name": self.name, "version": __version__},
            }
        if method in ("notifications/initialized", "ping"):
            return {}
        if method == "tools/list":
            return {"tools": self.gateway.registry.describe()}
        if method == "tools/call":
            name = params.get("name")
            arguments = params.get("arguments") or {}
            if not isinstance(name, str) or not isinstance(arguments, dict):
                raise ProtocolError(INVALID_PARAMS, "tools/call requires a name and an arguments object")
            result = await self.gateway.handle(InvocationRequest(tool_name=name, arguments=arguments))
            return result.to_wire()
        if method == "logging/setLevel":
            level = LOG_LEVELS.get(str(params.get("level", "")).lower())
            if level is None:
                raise ProtocolError(INVALID_PARAMS, f"Unknown log level: {params.get('level')}")
            if self._log_handler is not None:
                self._log_handler.setLevel(level)
                # records below the logger's own level never reach the handler
                if self.gateway.logger.getEffectiveLevel() > level:
                    self.gateway.logger.setLevel(level)
            return {}
        raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
