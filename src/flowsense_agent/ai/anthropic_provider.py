"""Anthropic Messages API backend."""

from __future__ import annotations

import json
from typing import Any, Optional

import anthropic

from flowsense_agent.ai.provider import LLMProvider, kind_for_status, parse_tool_arguments
from flowsense_agent.config import LLMConfig
from flowsense_agent.core.cache import BoundedCache
from flowsense_agent.core.models import CompletionResponse, Message, ToolCall, ToolDefinition, Usage
from flowsense_agent.core.types import FinishReason, ProviderErrorKind, Role
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

_STOP_REASONS = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "tool_use": FinishReason.TOOL_CALLS,
    "refusal": FinishReason.CONTENT_FILTER,
}


def _is_tool_result_turn(message: dict[str, Any]) -> bool:
    content = message["content"]
    return isinstance(content, list) and any(block.get("type") == "tool_result" for block in content)


def build_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert agent messages into Anthropic API message dicts.

    Consecutive tool results are grouped into one user turn of ``tool_result``
    blocks. System-role messages are skipped; the caller folds them into the
    system prompt.
    """
    out: list[dict[str, Any]] = []

    for msg in messages:
        match msg.role:
            case Role.USER:
                out.append({"role": "user", "content": msg.content})
            case Role.ASSISTANT:
                if msg.tool_calls:
                    blocks: list[dict[str, Any]] = []
                    if msg.content:
                        blocks.append({"type": "text", "text": msg.content})
                    for call in msg.tool_calls:
                        blocks.append(
                            {
                                "type": "tool_use",
                                "id": call.id,
                                "name": call.name,
                                "input": parse_tool_arguments(call.arguments),
                            }
                        )
                    out.append({"role": "assistant", "content": blocks})
                elif msg.content:
                    out.append({"role": "assistant", "content": msg.content})
            case Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                if out and out[-1]["role"] == "user" and _is_tool_result_turn(out[-1]):
                    out[-1]["content"].append(block)
                else:
                    out.append({"role": "user", "content": [block]})

    # The conversation must open with a plain user turn
    while out and (out[0]["role"] != "user" or _is_tool_result_turn(out[0])):
        out.pop(0)
    return out


def build_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [
        {"name": t.name, "description": t.description, "input_schema": t.to_json_schema()}
        for t in tools
    ]


class AnthropicProvider(LLMProvider):
    """Claude models through the official ``anthropic`` SDK."""

    name = "anthropic"
    key_prefix = "sk-ant-"

    def __init__(
        self,
        config: LLMConfig,
        response_cache: Optional[BoundedCache[CompletionResponse]] = None,
        cache_ttl: float | None = None,
        client: Any = None,
    ):
        super().__init__(config, response_cache, cache_ttl)
        # Retries are handled by LLMProvider._retry
        self._client = client or anthropic.AsyncAnthropic(
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
        system = "\n\n".join(
            [system_prompt, *(m.content for m in messages if m.role == Role.SYSTEM and m.content)]
        ).strip()
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": build_messages(messages),
            "temperature": self.config.temperature,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = build_tools(tools)

        logger.debug("llm_request", provider=self.name, model=self.model, message_count=len(kwargs["messages"]))
        response = await self._client.messages.create(**kwargs)
        logger.debug(
            "llm_response",
            provider=self.name,
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

        text = "".join(block.text for block in response.content if block.type == "text")
        tool_calls = [
            ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input))
            for block in response.content
            if block.type == "tool_use"
        ]
        finish_reason = _STOP_REASONS.get(response.stop_reason)
        return CompletionResponse(
            content=text,
            tool_calls=tool_calls or None,
            finished=finish_reason in (FinishReason.STOP, FinishReason.TOOL_CALLS),
            finish_reason=finish_reason,
            usage=Usage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
        )

    def classify_error(self, exc: BaseException) -> ProviderErrorKind:
        # APITimeoutError subclasses APIConnectionError, so check it first
        if isinstance(exc, anthropic.APITimeoutError):
            return ProviderErrorKind.TIMEOUT
        if isinstance(exc, anthropic.APIConnectionError):
            return ProviderErrorKind.SERVICE_UNAVAILABLE
        if isinstance(exc, anthropic.APIStatusError):
            return kind_for_status(exc.status_code)
        return super().classify_error(exc)
