"""Tool registry - append-only set of named tool definitions."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from figmagate.gateway.schema import ToolDef


class DuplicateToolError(Exception):
    """Raised when a tool name is registered twice."""


class ToolRegistry:
    """
    Holds the tools a gateway can dispatch to.

    Registration is append-only: a name can be registered once and the
    definition is never replaced. After startup the registry is only read.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDef] = {}

    def register(self, tool: ToolDef) -> ToolDef:
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        return tool

    # ── Tool Lookup ───────────────────────────────────────────────────────

    def get_tool(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    def list_tools(self) -> List[ToolDef]:
        """Return all tools in registration order."""
        return list(self._tools.values())

    def describe(self) -> List[Dict[str, Any]]:
        """The ``tools`` array of a ``tools/list`` response."""
        return [tool.describe() for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
