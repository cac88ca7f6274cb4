"""Error taxonomy shared by the provider, tool and orchestration layers."""

from __future__ import annotations

from typing import Any

from flowsense_agent.core.types import ProviderErrorKind

NON_RETRYABLE_KINDS = frozenset(
    {ProviderErrorKind.INVALID_CREDENTIAL, ProviderErrorKind.RATE_LIMITED}
)


class AgentError(Exception):
    """Base class for every error raised by flowsense_agent."""

    code = "AGENT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AgentError):
    code = "CONFIGURATION_ERROR"


class LLMError(AgentError):
    """A reasoning-service failure normalized into the provider taxonomy."""

    code = "LLM_ERROR"

    def __init__(
        self,
        message: str,
        kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind not in NON_RETRYABLE_KINDS


class ToolError(AgentError):
    code = "TOOL_ERROR"


class ValidationError(AgentError):
    code = "VALIDATION_ERROR"


class OrchestrationError(AgentError):
    """Unexpected failure inside ``process_message``; the only error that aborts a request."""

    code = "PROCESS_MESSAGE_ERROR"

    def __init__(self, message: str, cause: BaseException, user_message: str, user_address: str):
        super().__init__(
            message,
            {"user_message": user_message, "user_address": user_address},
        )
        self.cause = cause
        self.user_message = user_message
        self.user_address = user_address
