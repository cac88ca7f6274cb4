"""Tool registry for discovering and managing available tools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.core.models import ToolDefinition
from flowsense_agent.core.types import ParamType
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

_VALID_TYPES = frozenset(str(t) for t in ParamType)


@dataclass
class RegistryStats:
    total_tools: int
    tool_names: list[str]
    total_parameters: int
    average_parameters_per_tool: float


class ToolRegistry:
    """Insertion-ordered registry of tools keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        definition = tool.definition
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered")
        self._validate_definition(definition)
        self._tools[definition.name] = tool
        logger.info("tool_registered", tool_name=definition.name)

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_all(self) -> list[Tool]:
        return list(self._tools.values())

    def get_definitions(self) -> list[ToolDefinition]:
        """Definitions of every registered tool, in registration order."""
        return [tool.definition for tool in self._tools.values()]

    def has(self, name: str) -> bool:
        return name in self._tools

    __contains__ = has

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def clear(self) -> None:
        self._tools.clear()

    def count(self) -> int:
        return len(self._tools)

    __len__ = count

    def names(self) -> list[str]:
        return list(self._tools)

    def stats(self) -> RegistryStats:
        total_params = sum(len(t.definition.parameters) for t in self._tools.values())
        count = len(self._tools)
        return RegistryStats(
            total_tools=count,
            tool_names=self.names(),
            total_parameters=total_params,
            average_parameters_per_tool=total_params / count if count else 0.0,
        )

    @staticmethod
    def _validate_definition(definition: ToolDefinition) -> None:
        if not definition.name or not definition.name.strip():
            raise ValueError("Tool name is required")
        if not definition.description or not definition.description.strip():
            raise ValueError(f"Tool '{definition.name}' must have a description")
        if not isinstance(definition.parameters, (list, tuple)):
            raise ValueError(f"Tool '{definition.name}' must have a parameters sequence")

        for param in definition.parameters:
            if not param.name or not param.name.strip():
                raise ValueError(f"Tool '{definition.name}' has parameter without name")
            if not param.type:
                raise ValueError(f"Tool '{definition.name}' parameter '{param.name}' must have a type")
            if not param.description or not param.description.strip():
                raise ValueError(
                    f"Tool '{definition.name}' parameter '{param.name}' must have a description"
                )
            if str(param.type) not in _VALID_TYPES:
                raise ValueError(
                    f"Tool '{definition.name}' parameter '{param.name}' has invalid type '{param.type}'"
                )
