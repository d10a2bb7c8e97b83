"""
Tool gateway for Figmagate.

Tools are registered once with a pydantic argument model. Each invocation is
validated against that model before its handler runs, and every outcome,
including handler failures, comes back as the same envelope::

    {"content": [{"type": "text", "text": "..."}], "isError": false}
"""

from figmagate.gateway.schema import ContentBlock, InvocationRequest, InvocationResult, ToolDef, ToolParam
from figmagate.gateway.registry import DuplicateToolError, ToolRegistry
from figmagate.gateway.executor import GatewayState, GatewayStateError, ToolGateway

__all__ = [
    "ContentBlock",
    "DuplicateToolError",
    "GatewayState",
    "GatewayStateError",
    "InvocationRequest",
    "InvocationResult",
    "ToolDef",
    "ToolGateway",
    "ToolParam",
    "ToolRegistry",
]
