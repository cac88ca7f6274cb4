"""Agent orchestrator: drives the model through bounded tool-calling rounds."""

from __future__ import annotations

import asyncio
import contextlib
import json
import weakref
from typing import Any, AsyncContextManager, Optional

from flowsense_agent.ai.prompts import SYSTEM_PROMPT
from flowsense_agent.ai.provider import LLMProvider
from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.ai.tools.registry import ToolRegistry
from flowsense_agent.config import AgentConfig
from flowsense_agent.core.context import ContextStore
from flowsense_agent.core.errors import OrchestrationError
from flowsense_agent.core.intent import create_unknown_intent, parse_tool_result_to_intent
from flowsense_agent.core.models import (
    AgentResult,
    ConversationContext,
    Message,
    ParsedIntent,
    ToolCall,
    ToolCallRecord,
    ToolContext,
    ToolResult,
)
from flowsense_agent.core.types import Role
from flowsense_agent.core.validation import is_valid_conversation_id, sanitize_input
from flowsense_agent.log import bound_context, get_logger

logger = get_logger(__name__)

NO_MESSAGE_RESPONSE = "I didn't receive any message. How can I help you?"
MAX_ITERATIONS_RESPONSE = (
    "I apologize, but I encountered an issue processing your request. Please try again."
)


class FlowSenseAgent:
    """Turns one user message into an AgentResult.

    Each call sanitizes the input, resolves a conversation context, then asks
    the provider for a tools-aware completion up to ``max_iterations`` times.
    Tool calls run sequentially in the order the model emitted them and a
    failing tool is reported back to the model instead of aborting the round.
    """

    def __init__(
        self,
        provider: LLMProvider,
        tool_registry: ToolRegistry,
        context_store: ContextStore,
        config: AgentConfig | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self._provider = provider
        self._tools = tool_registry
        self._contexts = context_store
        self._config = config or AgentConfig()
        self._system_prompt = system_prompt
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @system_prompt.setter
    def system_prompt(self, prompt: str) -> None:
        self._system_prompt = prompt

    async def process_message(
        self,
        user_message: str,
        user_address: str,
        conversation_id: str | None = None,
        previous_messages: list[Message] | None = None,
    ) -> AgentResult:
        try:
            text = sanitize_input(user_message)
            if not text:
                context = self._contexts.create(user_address)
                return AgentResult(
                    intent=create_unknown_intent(user_message, "Empty message"),
                    response=NO_MESSAGE_RESPONSE,
                    conversation_id=context.id,
                )

            async with self._conversation_lock(conversation_id, previous_messages):
                context = self._resolve_context(user_address, conversation_id, previous_messages)
                with bound_context(conversation_id=context.id):
                    self._append(context, Message(role=Role.USER, content=text))
                    return await self._run_loop(context, text, context.messages[-1])
        except Exception as e:
            logger.error("process_message_failed", user_address=user_address, error=str(e))
            raise OrchestrationError(
                f"Failed to process message: {e}", cause=e, user_message=user_message, user_address=user_address
            ) from e

    def get_context(self, conversation_id: str) -> Optional[ConversationContext]:
        return self._contexts.get(conversation_id)

    def clear_context(self, conversation_id: str) -> bool:
        return self._contexts.clear(conversation_id)

    def update_config(self, **changes: Any) -> None:
        self._config = self._config.model_copy(update=changes)

    def get_config(self) -> AgentConfig:
        return self._config.model_copy()

    # -- state machine ----------------------------------------------------

    def _resolve_context(
        self,
        user_address: str,
        conversation_id: str | None,
        previous_messages: list[Message] | None,
    ) -> ConversationContext:
        if previous_messages:
            context = self._contexts.create(user_address)
            for message in previous_messages:
                self._append(context, message)
            logger.debug("context_seeded", conversation_id=context.id, messages=len(previous_messages))
            return context

        if conversation_id:
            if not is_valid_conversation_id(conversation_id):
                logger.warning("invalid_conversation_id", conversation_id=conversation_id)
            else:
                existing = self._contexts.get(conversation_id)
                if existing is not None:
                    return existing
                logger.debug("context_not_found", conversation_id=conversation_id)

        return self._contexts.create(user_address)

    async def _run_loop(
        self, context: ConversationContext, raw_input: str, user_turn: Message
    ) -> AgentResult:
        records: list[ToolCallRecord] = []
        intent: ParsedIntent | None = None
        final_response = ""
        definitions = self._tools.get_definitions()

        for iteration in range(1, self._config.max_iterations + 1):
            logger.debug("agent_iteration", iteration=iteration, messages=len(context.messages))
            completion = await self._provider.complete_with_tools(
                self._request_window(context, user_turn), self._system_prompt, definitions
            )
            self._append(
                context,
                Message(role=Role.ASSISTANT, content=completion.content, tool_calls=completion.tool_calls),
            )

            if not completion.tool_calls:
                final_response = completion.content
                break

            for call in completion.tool_calls:
                tool = self._tools.get(call.name)
                record = await self._dispatch(call, tool, context, raw_input)
                records.append(record)
                self._append(
                    context,
                    Message(
                        role=Role.TOOL,
                        content=record.result.to_json(),
                        tool_call_id=call.id,
                        tool_name=call.name,
                    ),
                )
                candidate = self._transaction_intent(tool, record.result)
                if candidate is not None:
                    intent = candidate
        else:
            logger.warning("max_iterations_reached", max_iterations=self._config.max_iterations)

        if not final_response:
            final_response = MAX_ITERATIONS_RESPONSE

        if intent is None:
            if records:
                last = records[-1]
                intent = parse_tool_result_to_intent(last.tool, last.result, raw_input)
            else:
                intent = create_unknown_intent(raw_input, "No actionable intent detected")

        return AgentResult(
            intent=intent,
            response=final_response,
            conversation_id=context.id,
            tool_calls=records or None,
        )

    async def _dispatch(
        self, call: ToolCall, tool: Tool | None, context: ConversationContext, raw_input: str
    ) -> ToolCallRecord:
        params: Any = {}
        if tool is None:
            result = Tool.failure(f"Tool not found: {call.name}")
        else:
            try:
                params = json.loads(call.arguments) if call.arguments else {}
            except json.JSONDecodeError as e:
                result = Tool.failure(f"Invalid arguments for {call.name}: {e}")
            else:
                tool_context = ToolContext(
                    user_address=context.owner_address,
                    conversation_id=context.id,
                    metadata={**context.metadata, "raw_input": raw_input},
                )
                try:
                    result = await tool.execute_with_validation(params, tool_context)
                except Exception as e:
                    logger.error("tool_dispatch_failed", tool=call.name, error=str(e))
                    result = Tool.failure(str(e) or "Tool execution failed")

        logger.info(
            "tool_execute",
            tool=call.name,
            success=result.success,
            duration_ms=result.metadata.execution_time_ms,
            error=result.error,
        )
        return ToolCallRecord(
            tool=call.name,
            params=params if isinstance(params, dict) else {},
            result=result,
        )

    @staticmethod
    def _transaction_intent(tool: Tool | None, result: ToolResult) -> ParsedIntent | None:
        if tool is None or tool.definition.intent_type is None or not result.success:
            return None
        if isinstance(result.data, ParsedIntent):
            return result.data
        if isinstance(result.data, dict):
            try:
                return ParsedIntent.from_dict(result.data)
            except (TypeError, ValueError) as e:
                logger.warning("intent_payload_invalid", tool=tool.definition.name, error=str(e))
        return None

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _request_window(context: ConversationContext, user_turn: Message) -> list[Message]:
        """The stored history, with this run's user turn kept even once trimmed."""
        messages = list(context.messages)
        if not any(m is user_turn for m in messages):
            messages.insert(0, user_turn)
        return messages

    def _append(self, context: ConversationContext, message: Message) -> None:
        if self._contexts.update(context.id, message) is None:
            # Evicted mid-run; keep the run coherent on the local copy
            logger.warning("context_lost", conversation_id=context.id)
            context.messages.append(message)
            del context.messages[: max(0, len(context.messages) - self._contexts.max_messages)]

    def _conversation_lock(
        self, conversation_id: str | None, previous_messages: list[Message] | None
    ) -> AsyncContextManager[Any]:
        if previous_messages or not conversation_id:
            return contextlib.nullcontext()
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock
