"""Tests for FlowSenseAgent.process_message."""

import asyncio
import json
from typing import Any

import pytest
from structlog.testing import capture_logs

from flowsense_agent.ai.agent import MAX_ITERATIONS_RESPONSE, NO_MESSAGE_RESPONSE, FlowSenseAgent
from flowsense_agent.ai.factory import create_default_tool_registry
from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.config import AgentConfig
from flowsense_agent.core.errors import LLMError, OrchestrationError
from flowsense_agent.core.models import Message, ToolContext, ToolDefinition, ToolResult
from flowsense_agent.core.types import IntentType, ProviderErrorKind, Role

from conftest import WALLET, FakeLedger, ScriptedProvider, text_response, tool_response

SWAP_ARGS = json.dumps({"amountIn": 10, "tokenIn": "flow", "tokenOut": "usdc"})


def _agent(provider, context_store, max_iterations=3, registry=None) -> FlowSenseAgent:
    return FlowSenseAgent(
        provider,
        registry or create_default_tool_registry(FakeLedger()),
        context_store,
        AgentConfig(max_iterations=max_iterations),
    )


class TestLoop:
    async def test_plain_answer(self, context_store):
        provider = ScriptedProvider([text_response("Hi there!")])
        agent = _agent(provider, context_store)

        result = await agent.process_message("hello", WALLET)

        assert result.response == "Hi there!"
        assert result.intent.type == IntentType.UNKNOWN
        assert result.intent.params == {"reason": "No actionable intent detected"}
        assert result.tool_calls is None
        assert provider.call_count == 1

    async def test_bounded_iteration(self, context_store):
        """A model that always asks for tools gets exactly max_iterations rounds."""
        provider = ScriptedProvider(default=tool_response(("check_balance", '{"token": "flow"}')))
        agent = _agent(provider, context_store, max_iterations=3)

        result = await agent.process_message("balance?", WALLET)

        assert provider.call_count == 3
        assert result.response == MAX_ITERATIONS_RESPONSE
        assert len(result.tool_calls) == 3
        assert result.intent.type == IntentType.BALANCE

    async def test_tool_isolation(self, context_store):
        """A failing tool and a succeeding tool in one round both report back to the model."""
        provider = ScriptedProvider(
            [
                tool_response(
                    ("get_price", json.dumps({"tokenFrom": "flow", "tokenTo": "flow"})),
                    ("check_balance", json.dumps({"token": "flow"})),
                ),
                text_response("Your FLOW balance is 42.5"),
            ]
        )
        agent = _agent(provider, context_store)

        result = await agent.process_message("price and balance", WALLET)

        assert result.response == "Your FLOW balance is 42.5"
        assert [r.result.success for r in result.tool_calls] == [False, True]
        assert result.tool_calls[0].result.error == "Cannot get price for same token"

        second_request, _, _ = provider.requests[1]
        assistant, first_tool, second_tool = second_request[-3:]
        assert assistant.role == Role.ASSISTANT
        assert [c.id for c in assistant.tool_calls] == [first_tool.tool_call_id, second_tool.tool_call_id]
        assert json.loads(first_tool.content) == {
            "success": False,
            "error": "Cannot get price for same token",
            "metadata": {"execution_time_ms": result.tool_calls[0].result.metadata.execution_time_ms},
        }
        assert json.loads(second_tool.content)["data"]["balance"] == 42.5

    async def test_unknown_tool_and_bad_arguments(self, context_store):
        provider = ScriptedProvider(
            [
                tool_response(("launch_rocket", "{}"), ("check_balance", "{not json")),
                text_response("Sorry."),
            ]
        )
        agent = _agent(provider, context_store)

        result = await agent.process_message("do things", WALLET)

        unknown, bad_json = result.tool_calls
        assert unknown.result.error == "Tool not found: launch_rocket"
        assert bad_json.result.error.startswith("Invalid arguments for check_balance:")
        assert result.intent.type == IntentType.UNKNOWN
        assert result.response == "Sorry."

    async def test_round_wider_than_history_keeps_user_turn(self, context_store):
        """Tool results that push the asking turns out of the window never leave an empty request."""
        calls = [("build_swap_transaction", SWAP_ARGS)] * context_store.max_messages
        provider = ScriptedProvider([tool_response(*calls), text_response("Confirm the swaps.")])
        agent = _agent(provider, context_store)

        result = await agent.process_message("swap 10 flow, ten times", WALLET)

        assert result.response == "Confirm the swaps."
        assert result.intent.type == IntentType.SWAP
        second_request, _, _ = provider.requests[1]
        assert [(m.role, m.content) for m in second_request] == [(Role.USER, "swap 10 flow, ten times")]
        stored = agent.get_context(result.conversation_id).messages
        assert len(stored) == context_store.max_messages

    async def test_tools_offered_to_model(self, context_store):
        provider = ScriptedProvider([text_response("ok")])
        agent = _agent(provider, context_store)

        await agent.process_message("hi", WALLET)

        _, system_prompt, tools = provider.requests[0]
        assert system_prompt == agent.system_prompt
        assert [t.name for t in tools][:3] == ["check_balance", "get_price", "view_portfolio"]


class TestIntent:
    async def test_transaction_intent_from_builder(self, context_store):
        provider = ScriptedProvider(
            [tool_response(("build_swap_transaction", SWAP_ARGS)), text_response("Please confirm the swap.")]
        )
        agent = _agent(provider, context_store)

        result = await agent.process_message("Swap 10 FLOW to USDC", WALLET)

        assert result.intent.type == IntentType.SWAP
        assert result.intent.confidence == 1.0
        assert result.intent.raw_input == "Swap 10 FLOW to USDC"
        assert result.intent.params["amountIn"] == "10"
        assert result.response == "Please confirm the swap."

    async def test_transaction_intent_survives_later_read_tool(self, context_store):
        provider = ScriptedProvider(
            [
                tool_response(("build_swap_transaction", SWAP_ARGS)),
                tool_response(("check_balance", '{"token": "flow"}')),
                text_response("Done."),
            ]
        )
        agent = _agent(provider, context_store)

        result = await agent.process_message("swap then check", WALLET)

        assert result.intent.type == IntentType.SWAP
        assert len(result.tool_calls) == 2

    async def test_failed_builder_yields_unknown(self, context_store):
        args = json.dumps({"amountIn": 1, "tokenIn": "flow", "tokenOut": "flow"})
        provider = ScriptedProvider([tool_response(("build_swap_transaction", args)), text_response("Can't.")])
        agent = _agent(provider, context_store)

        result = await agent.process_message("swap flow to flow", WALLET)

        assert result.intent.type == IntentType.UNKNOWN
        assert result.intent.params == {"error": "Cannot swap same token"}

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "swap", "params": {}, "confidence": None},
            {"type": "swap", "params": ["ab"], "confidence": 1.0},
            {"type": "swap", "params": {}, "confidence": "high"},
        ],
    )
    async def test_malformed_builder_payload_does_not_abort(self, context_store, payload):
        class LooseSwapTool(Tool):
            @property
            def definition(self) -> ToolDefinition:
                return ToolDefinition(
                    name="loose_swap", description="Builds a swap loosely", intent_type=IntentType.SWAP
                )

            async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
                return self.success(payload)

        registry = create_default_tool_registry()
        registry.register(LooseSwapTool())
        provider = ScriptedProvider([tool_response(("loose_swap", "{}")), text_response("Something went wrong.")])
        agent = _agent(provider, context_store, registry=registry)

        with capture_logs() as logs:
            result = await agent.process_message("swap it", WALLET)

        assert result.response == "Something went wrong."
        assert result.intent.type == IntentType.UNKNOWN
        assert result.tool_calls[0].result.success is True
        assert any(log["event"] == "intent_payload_invalid" for log in logs)

    async def test_result_to_dict(self, context_store):
        provider = ScriptedProvider(
            [tool_response(("initialize_vault", '{"token": "usdt"}')), text_response("Sign to create it.")]
        )
        agent = _agent(provider, context_store)

        result = (await agent.process_message("setup usdt vault", WALLET)).to_dict()

        assert result["intent"]["type"] == "vault_init"
        assert result["tool_calls"][0]["tool"] == "initialize_vault"
        assert result["tool_calls"][0]["result"]["params"] == {"token": "usdt"}


class TestContextResolution:
    async def test_empty_input_short_circuits(self, context_store):
        provider = ScriptedProvider()
        agent = _agent(provider, context_store)

        result = await agent.process_message(" \x00\n ", WALLET)

        assert result.response == NO_MESSAGE_RESPONSE
        assert result.intent.type == IntentType.UNKNOWN
        assert result.tool_calls is None
        assert provider.call_count == 0
        assert context_store.get(result.conversation_id) is not None

    async def test_previous_messages_seed_fresh_context(self, context_store):
        provider = ScriptedProvider([text_response("Sure.")])
        agent = _agent(provider, context_store)
        history = [
            Message(role=Role.USER, content="what can you do?"),
            Message(role=Role.ASSISTANT, content="I can check balances."),
        ]

        result = await agent.process_message("check mine", WALLET, previous_messages=history)

        sent, _, _ = provider.requests[0]
        assert [(m.role, m.content) for m in sent] == [
            (Role.USER, "what can you do?"),
            (Role.ASSISTANT, "I can check balances."),
            (Role.USER, "check mine"),
        ]
        stored = agent.get_context(result.conversation_id)
        assert stored.messages[-1].content == "Sure."

    async def test_existing_conversation_is_reused(self, context_store):
        provider = ScriptedProvider([text_response("First."), text_response("Second.")])
        agent = _agent(provider, context_store)

        first = await agent.process_message("one", WALLET)
        second = await agent.process_message("two", WALLET, conversation_id=first.conversation_id)

        assert second.conversation_id == first.conversation_id
        sent, _, _ = provider.requests[1]
        assert [m.content for m in sent] == ["one", "First.", "two"]

    async def test_unknown_or_invalid_id_starts_fresh(self, context_store):
        provider = ScriptedProvider(default=text_response("ok"))
        agent = _agent(provider, context_store)

        invalid = await agent.process_message("hi", WALLET, conversation_id="not-a-uuid")
        missing = await agent.process_message("hi", WALLET, conversation_id="0b7c1f8e-1d5a-4c3e-9f2a-6e8d4b2a1c90")

        assert invalid.conversation_id != "not-a-uuid"
        assert missing.conversation_id != "0b7c1f8e-1d5a-4c3e-9f2a-6e8d4b2a1c90"
        assert len(provider.requests[1][0]) == 1

    async def test_expired_conversation_starts_fresh(self, context_store, clock):
        provider = ScriptedProvider(default=text_response("ok"))
        agent = _agent(provider, context_store)

        first = await agent.process_message("hi", WALLET)
        clock.advance(context_store.expiry_seconds + 1)
        second = await agent.process_message("hi again", WALLET, conversation_id=first.conversation_id)

        assert second.conversation_id != first.conversation_id

    async def test_clear_context(self, context_store):
        provider = ScriptedProvider([text_response("ok")])
        agent = _agent(provider, context_store)

        result = await agent.process_message("hi", WALLET)

        assert agent.clear_context(result.conversation_id) is True
        assert agent.get_context(result.conversation_id) is None

    async def test_context_evicted_mid_run(self, context_store):
        class ForgetfulTool(Tool):
            def __init__(self, store):
                self.store = store

            @property
            def definition(self) -> ToolDefinition:
                return ToolDefinition(name="forget", description="Drops the conversation")

            async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
                self.store.clear(context.conversation_id)
                return self.success({"forgotten": True})

        registry = create_default_tool_registry()
        registry.register(ForgetfulTool(context_store))
        provider = ScriptedProvider([tool_response(("forget", "{}")), text_response("Still here.")])
        agent = _agent(provider, context_store, registry=registry)

        result = await agent.process_message("forget me", WALLET)

        assert result.response == "Still here."
        second_request, _, _ = provider.requests[1]
        assert second_request[-1].role == Role.TOOL


class TestErrors:
    async def test_provider_failure_is_wrapped(self, context_store):
        cause = LLMError("Rate limit exceeded", kind=ProviderErrorKind.RATE_LIMITED)
        provider = ScriptedProvider([cause])
        agent = _agent(provider, context_store)

        with pytest.raises(OrchestrationError) as exc_info:
            await agent.process_message("hi", WALLET)

        error = exc_info.value
        assert error.cause is cause
        assert error.__cause__ is cause
        assert error.user_message == "hi"
        assert error.user_address == WALLET
        assert error.code == "PROCESS_MESSAGE_ERROR"

    async def test_context_store_failure_is_wrapped(self, context_store, monkeypatch):
        def broken_create(*args, **kwargs):
            raise RuntimeError("store offline")

        monkeypatch.setattr(context_store, "create", broken_create)
        agent = _agent(ScriptedProvider(), context_store)

        with pytest.raises(OrchestrationError, match="store offline"):
            await agent.process_message("hi", WALLET)


class TestConcurrency:
    async def test_same_conversation_is_serialized(self, context_store):
        class SlowProvider(ScriptedProvider):
            in_flight = 0
            max_in_flight = 0

            async def _request(self, messages, system_prompt, tools):
                SlowProvider.in_flight += 1
                SlowProvider.max_in_flight = max(SlowProvider.max_in_flight, SlowProvider.in_flight)
                for _ in range(3):
                    await asyncio.sleep(0)
                SlowProvider.in_flight -= 1
                return await super()._request(messages, system_prompt, tools)

        provider = SlowProvider(default=text_response("ok"))
        agent = _agent(provider, context_store)
        first = await agent.process_message("start", WALLET)
        SlowProvider.max_in_flight = 0

        results = await asyncio.gather(
            agent.process_message("a", WALLET, conversation_id=first.conversation_id),
            agent.process_message("b", WALLET, conversation_id=first.conversation_id),
        )

        assert SlowProvider.max_in_flight == 1
        assert {r.conversation_id for r in results} == {first.conversation_id}
        contents = [m.content for m in agent.get_context(first.conversation_id).messages]
        assert contents == ["start", "ok", "a", "ok", "b", "ok"]


class TestConfig:
    async def test_update_config(self, context_store):
        provider = ScriptedProvider(default=tool_response(("check_balance", "{}")))
        agent = _agent(provider, context_store, max_iterations=5)

        agent.update_config(max_iterations=1)
        await agent.process_message("balance", WALLET)

        assert provider.call_count == 1
        assert agent.get_config().max_iterations == 1

    async def test_get_config_returns_copy(self, context_store):
        agent = _agent(ScriptedProvider(), context_store)
        config = agent.get_config()
        config.max_iterations = 99
        assert agent.get_config().max_iterations == 3

    async def test_system_prompt_setter(self, context_store):
        provider = ScriptedProvider([text_response("ok")])
        agent = _agent(provider, context_store)
        agent.system_prompt = "Be brief."

        await agent.process_message("hi", WALLET)

        assert provider.requests[0][1] == "Be brief."
