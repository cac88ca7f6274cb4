"""Abstract tool interface for model-callable capabilities."""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from flowsense_agent.core.errors import ToolError, ValidationError
from flowsense_agent.core.models import ToolContext, ToolDefinition, ToolParameter, ToolResult, ToolResultMetadata
from flowsense_agent.core.types import ParamType
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

_MISSING: Any = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    ParamType.STRING: lambda v: isinstance(v, str),
    ParamType.NUMBER: _is_number,
    ParamType.BOOLEAN: lambda v: isinstance(v, bool),
    ParamType.ARRAY: lambda v: isinstance(v, list),
    ParamType.OBJECT: lambda v: isinstance(v, dict),
}


class Tool(ABC):
    """Base class for all model-callable tools."""

    @property
    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Static descriptor sent to the reasoning service."""
        ...

    @property
    def name(self) -> str:
        return self.definition.name

    @abstractmethod
    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        """Run the tool. May raise ToolError or ValidationError."""
        ...

    def validate_params(self, params: Any) -> str | None:
        """Return the first parameter violation, or None if ``params`` is acceptable."""
        if not isinstance(params, dict):
            return "Parameters must be an object"
        for param in self.definition.parameters:
            if param.name not in params:
                if param.required:
                    return f"Missing required parameter: {param.name}"
                continue
            value = params[param.name]
            error = self._check_type(value, param) or self._check_enum(value, param)
            if error:
                return error
        return None

    async def execute_with_validation(self, params: Any, context: ToolContext) -> ToolResult:
        """Validate, execute and time the tool. Never raises."""
        start = time.perf_counter()
        try:
            error = self.validate_params(params)
            if error:
                raise ValidationError(error)
            result = await self.execute(params, context)
        except (ValidationError, ToolError) as e:
            result = self.failure(e.message)
        except Exception as e:
            logger.error("tool_execution_error", tool=self.name, error=str(e))
            result = self.failure(f"Tool execution failed: {e}")
        result.metadata.execution_time_ms = round((time.perf_counter() - start) * 1000, 3)
        return result

    @staticmethod
    def success(data: Any, warnings: list[str] | None = None, cached: bool = False) -> ToolResult:
        return ToolResult(
            success=True,
            data=data,
            metadata=ToolResultMetadata(cached=cached, warnings=list(warnings or [])),
        )

    @staticmethod
    def failure(error: str, warnings: list[str] | None = None) -> ToolResult:
        return ToolResult(
            success=False,
            error=error,
            metadata=ToolResultMetadata(warnings=list(warnings or [])),
        )

    @staticmethod
    def get_param(params: dict[str, Any], name: str, default: Any = _MISSING) -> Any:
        if name in params:
            return params[name]
        if default is not _MISSING:
            return default
        raise ValidationError(f"Required parameter '{name}' not found")

    @staticmethod
    def _check_type(value: Any, param: ToolParameter) -> str | None:
        check = _TYPE_CHECKS.get(param.type)
        if check is not None and not check(value):
            article = "an" if str(param.type)[0] in "aeiou" else "a"
            return f"Parameter '{param.name}' must be {article} {param.type}"
        return None

    @staticmethod
    def _check_enum(value: Any, param: ToolParameter) -> str | None:
        if not param.enum:
            return None
        if str(value) not in param.enum:
            return f"Parameter '{param.name}' must be one of: {', '.join(param.enum)}"
        return None
