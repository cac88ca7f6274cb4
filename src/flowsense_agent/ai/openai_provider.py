"""OpenAI Chat Completions backend."""

from __future__ import annotations

from typing import Any, Optional

import openai

from flowsense_agent.ai.provider import LLMProvider, kind_for_status
from flowsense_agent.config import LLMConfig
from flowsense_agent.core.cache import BoundedCache
from flowsense_agent.core.models import CompletionResponse, Message, ToolCall, ToolDefinition, Usage
from flowsense_agent.core.types import FinishReason, ProviderErrorKind, Role
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "content_filter": FinishReason.CONTENT_FILTER,
}


def build_messages(messages: list[Message], system_prompt: str) -> list[dict[str, Any]]:
    """Convert agent messages into Chat Completions message dicts."""
    out: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]

    for msg in messages:
        match msg.role:
            case Role.SYSTEM | Role.USER:
                out.append({"role": str(msg.role), "content": msg.content})
            case Role.ASSISTANT:
                entry: dict[str, Any] = {"role": "assistant", "content": msg.content}
                # tool_calls must accompany the assistant turn that precedes tool messages
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments},
                        }
                        for call in msg.tool_calls
                    ]
                out.append(entry)
            case Role.TOOL:
                out.append({"role": "tool", "content": msg.content, "tool_call_id": msg.tool_call_id})
    return out


def build_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.to_json_schema(),
            },
        }
        for t in tools
    ]


class OpenAIProvider(LLMProvider):
    """GPT models through the official ``openai`` SDK."""

    name = "openai"
    key_prefix = "sk-"

    def __init__(
        self,
        config: LLMConfig,
        response_cache: Optional[BoundedCache[CompletionResponse]] = None,
        cache_ttl: float | None = None,
        client: Any = None,
    ):
        super().__init__(config, response_cache, cache_ttl)
        # Retries are handled by LLMProvider._retry
        self._client = client or openai.AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=0,
            timeout=config.timeout,
        )

    async def _request(
        self,
        messages: list[Message],
        system_prompt: str,
        tools: list[ToolDefinition] | None,
    ) -> CompletionResponse:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": build_messages(messages, system_prompt),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            kwargs["tools"] = build_tools(tools)
            kwargs["tool_choice"] = "auto"

        logger.debug("llm_request", provider=self.name, model=self.model, message_count=len(kwargs["messages"]))
        response = await self._client.chat.completions.create(**kwargs)

        if not response.choices:
            raise openai.OpenAIError("No response from OpenAI")
        choice = response.choices[0]

        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (choice.message.tool_calls or [])
            if tc.type == "function"
        ]
        usage = None
        if response.usage is not None:
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        finish_reason = _FINISH_REASONS.get(choice.finish_reason)

        logger.debug(
            "llm_response",
            provider=self.name,
            model=self.model,
            total_tokens=usage.total_tokens if usage else None,
            finish_reason=choice.finish_reason,
        )
        return CompletionResponse(
            content=choice.message.content or "",
            tool_calls=tool_calls or None,
            finished=finish_reason in (FinishReason.STOP, FinishReason.TOOL_CALLS),
            finish_reason=finish_reason,
            usage=usage,
        )

    def classify_error(self, exc: BaseException) -> ProviderErrorKind:
        # APITimeoutError subclasses APIConnectionError, so check it first
        if isinstance(exc, openai.APITimeoutError):
            return ProviderErrorKind.TIMEOUT
        if isinstance(exc, openai.APIConnectionError):
            return ProviderErrorKind.SERVICE_UNAVAILABLE
        if isinstance(exc, openai.APIStatusError):
            return kind_for_status(exc.status_code)
        return super().classify_error(exc)
