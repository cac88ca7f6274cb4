"""Domain records exchanged between the agent, providers and tools."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, Optional

from flowsense_agent.core.types import FinishReason, IntentType, ParamType, Role


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses (recursively) into plain JSON-compatible structures."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: to_jsonable(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


@dataclass
class ToolCall:
    """One tool request emitted by the reasoning service."""

    id: str
    name: str
    arguments: str  # JSON text, parsed and validated before execution


@dataclass
class Message:
    role: Role
    content: str
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None  # tool-role messages only
    tool_name: Optional[str] = None
    timestamp: Optional[float] = None  # epoch seconds


@dataclass
class ConversationContext:
    id: str
    owner_address: str
    created_at: float
    last_updated_at: float
    messages: list[Message] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class CompletionResponse:
    content: str
    tool_calls: Optional[list[ToolCall]] = None
    finished: bool = True
    finish_reason: Optional[FinishReason] = None
    usage: Optional[Usage] = None


@dataclass
class ResponseChunk:
    type: str  # "thinking" | "tool_call" | "tool_result" | "content" | "complete"
    content: str = ""
    tool_name: Optional[str] = None
    final: bool = False


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: ParamType | str
    description: str
    required: bool = False
    enum: Optional[tuple[str, ...]] = None
    default: Any = None


@dataclass(frozen=True)
class ToolExample:
    input: str
    parameters: dict[str, Any]
    expected_result: str = ""


@dataclass(frozen=True)
class ToolDefinition:
    """Static capability descriptor presented to the reasoning service.

    ``intent_type`` is set only by transaction-building tools; their successful
    payload is a ParsedIntent of that type.
    """

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()
    examples: tuple[ToolExample, ...] = ()
    intent_type: Optional[IntentType] = None

    def to_json_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's arguments object."""
        properties: dict[str, Any] = {}
        for param in self.parameters:
            prop: dict[str, Any] = {"type": str(param.type), "description": param.description}
            if param.enum:
                prop["enum"] = list(param.enum)
            properties[param.name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": [p.name for p in self.parameters if p.required],
        }


@dataclass
class ToolContext:
    user_address: str
    conversation_id: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResultMetadata:
    execution_time_ms: Optional[float] = None
    cached: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass
class ToolResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    metadata: ToolResultMetadata = field(default_factory=ToolResultMetadata)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = to_jsonable(self.data)
        if self.error is not None:
            out["error"] = self.error
        meta = {k: v for k, v in to_jsonable(self.metadata).items() if v is not None and v is not False and v != []}
        if meta:
            out["metadata"] = meta
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class ParsedIntent:
    type: IntentType
    params: dict[str, Any]
    confidence: float
    raw_input: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedIntent:
        """Build an intent from a tool payload. Raises TypeError or ValueError if malformed."""
        from flowsense_agent.core.intent import parse_intent_type

        params = data.get("params") or {}
        if not isinstance(params, dict):
            raise TypeError(f"params must be an object, got {type(params).__name__}")
        return cls(
            type=parse_intent_type(str(data.get("type", ""))),
            params=dict(params),
            confidence=float(data.get("confidence", 0.0)),
            raw_input=str(data.get("raw_input", data.get("rawInput", ""))),
        )


@dataclass
class ToolCallRecord:
    """One tool execution performed during a ``process_message`` run."""

    tool: str
    params: dict[str, Any]
    result: ToolResult

    def to_dict(self) -> dict[str, Any]:
        if self.result.success:
            result: Any = to_jsonable(self.result.data)
        else:
            result = {"success": False, "error": self.result.error}
        return {"tool": self.tool, "params": self.params, "result": result}


@dataclass
class AgentResult:
    intent: ParsedIntent
    response: str
    conversation_id: str
    tool_calls: Optional[list[ToolCallRecord]] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "intent": to_jsonable(self.intent),
            "response": self.response,
            "conversation_id": self.conversation_id,
        }
        if self.tool_calls:
            out["tool_calls"] = [record.to_dict() for record in self.tool_calls]
        return out
