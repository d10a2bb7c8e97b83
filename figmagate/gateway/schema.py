"""Data models for tool definitions, invocations, and result envelopes."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Type

from pydantic import BaseModel, ConfigDict, Field

Handler = Callable[[Any], Awaitable[Any]]


class ToolParam(BaseModel):
    """A single parameter for a tool, as advertised to clients."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False


class ToolDef(BaseModel):
    """
    A registered tool: name, argument model and async handler.

    The JSON schema and parameter list are derived from ``args_model`` once,
    in ``ToolDef.build``, and reused for every call.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Handler
    input_schema: Dict[str, Any] = Field(default_factory=dict)
    params: List[ToolParam] = Field(default_factory=list)

    @classmethod
    def build(cls, name: str, description: str, args_model: Type[BaseModel], handler: Handler) -> "ToolDef":
        schema = args_model.model_json_schema()
        required = set(schema.get("required", []))
        params = [
            ToolParam(
                name=pname,
                type=_param_type(pinfo),
                description=pinfo.get("description", ""),
                required=pname in required,
            )
            for pname, pinfo in schema.get("properties", {}).items()
        ]
        return cls(
            name=name,
            description=description,
            args_model=args_model,
            handler=handler,
            input_schema=schema,
            params=params,
        )

    def validate_arguments(self, arguments: Dict[str, Any]) -> BaseModel:
        """Raises pydantic ``ValidationError`` on mismatch."""
        return self.args_model.model_validate(arguments)

    def describe(self) -> Dict[str, Any]:
        """Entry for a ``tools/list`` response."""
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


def _param_type(pinfo: Dict[str, Any]) -> str:
    if "type" in pinfo:
        return pinfo["type"]
    # Optional[X] renders as anyOf [X, null]
    types = [option.get("type") for option in pinfo.get("anyOf", []) if option.get("type") != "null"]
    return types[0] if types and types[0] else "object"


class InvocationRequest(BaseModel):
    """Record of a single tool invocation."""

    call_id: str = ""
    tool_name: str = ""
    arguments: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()
        if not self.call_id:
            raw = f"{self.tool_name}:{self.arguments}:{self.timestamp}"
            self.call_id = hashlib.sha256(raw.encode()).hexdigest()[:12]


class ContentBlock(BaseModel):
    type: str = "text"
    text: str = ""


class InvocationResult(BaseModel):
    """The envelope returned for every invocation, success or failure."""

    content: List[ContentBlock] = Field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text(cls, text: str) -> "InvocationResult":
        return cls(content=[ContentBlock(text=text)])

    @classmethod
    def failure(cls, message: str) -> "InvocationResult":
        return cls(content=[ContentBlock(text=message)], is_error=True)

    @property
    def first_text(self) -> str:
        return self.content[0].text if self.content else ""

    def to_wire(self) -> Dict[str, Any]:
        return {
            "content": [block.model_dump() for block in self.content],
            "isError": self.is_error,
        }
