"""Tool gateway: validates invocations, dispatches them, shapes the envelope."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError

from figmagate.gateway.registry import ToolRegistry
from figmagate.gateway.schema import InvocationRequest, InvocationResult, ToolDef

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    CREATED = "created"
    TOOLS_REGISTERED = "tools_registered"
    CONNECTED = "connected"
    SERVING = "serving"
    STOPPED = "stopped"


class GatewayStateError(Exception):
    """Raised when a lifecycle method is called in the wrong state."""


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


class ToolGateway:
    """
    Dispatches tool invocations arriving on a channel.

    Lifecycle::

        CREATED -> TOOLS_REGISTERED -> CONNECTED -> SERVING -> STOPPED

    Tools can only be added before a channel is attached. Invocations are
    only accepted while SERVING. Whatever happens inside a handler, ``handle``
    returns an ``InvocationResult``; the gateway itself never raises on a bad
    request.
    """

    def __init__(self, registry: Optional[ToolRegistry] = None, log: Optional[logging.Logger] = None):
        self._registry = registry or ToolRegistry()
        self.logger = log or logger
        self._channel: Any = None
        self.state = GatewayState.TOOLS_REGISTERED if len(self._registry) else GatewayState.CREATED

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def channel(self) -> Any:
        return self._channel

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def register(self, tool: ToolDef) -> ToolDef:
        if self.state not in (GatewayState.CREATED, GatewayState.TOOLS_REGISTERED):
            raise GatewayStateError(f"Cannot register tools in state {self.state.value}")
        self._registry.register(tool)
        self.state = GatewayState.TOOLS_REGISTERED
        return tool

    def attach(self, channel: Any) -> None:
        if self.state in (GatewayState.CONNECTED, GatewayState.SERVING):
            raise GatewayStateError("A channel is already attached")
        if channel is None:
            raise GatewayStateError("Cannot attach a missing channel")
        self._channel = channel
        self.state = GatewayState.CONNECTED

    def start_serving(self) -> None:
        if self.state != GatewayState.CONNECTED:
            raise GatewayStateError(f"Cannot serve from state {self.state.value}; attach a channel first")
        self.state = GatewayState.SERVING

    def stop(self) -> None:
        """Release the channel. Serving again requires a new ``attach``."""
        if self.state == GatewayState.STOPPED:
            return
        if self._channel is not None and hasattr(self._channel, "close"):
            self._channel.close()
        self._channel = None
        self.state = GatewayState.STOPPED

    # ── Dispatch ──────────────────────────────────────────────────────────

    async def call(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> InvocationResult:
        return await self.handle(InvocationRequest(tool_name=tool_name, arguments=arguments or {}))

    async def handle(self, request: InvocationRequest) -> InvocationResult:
        """
        Run one invocation.

        Parameters
        ----------
        request : tool name and raw argument bag
        """
        if self.state != GatewayState.SERVING:
            return InvocationResult.failure(f"Gateway is not serving (state: {self.state.value})")

        tool = self._registry.get_tool(request.tool_name)
        if tool is None:
            return InvocationResult.failure(f"Tool not found: {request.tool_name}")

        try:
            args = tool.validate_arguments(request.arguments)
        except ValidationError as exc:
            self.logger.warning("Invalid arguments for %s: %s", tool.name, exc)
            return InvocationResult.failure(f"Invalid arguments for {tool.name}: {format_validation_error(exc)}")

        t0 = time.perf_counter()
        try:
            result = await tool.handler(args)
        except Exception as exc:
            self.logger.exception("Tool %s failed (call %s)", tool.name, request.call_id)
            return InvocationResult.failure(f"Error: {exc}")

        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        if not isinstance(result, InvocationResult):
            self.logger.error("Tool %s returned %s instead of a result", tool.name, type(result).__name__)
            return InvocationResult.failure(f"Tool {tool.name} returned an invalid result")

        self.logger.info(
            "Tool %s finished in %dms (call %s, error=%s)",
            tool.name, elapsed_ms, request.call_id, result.is_error,
        )
        return result
