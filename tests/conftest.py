"""Shared fakes and fixtures for the flowsense_agent test suite."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from flowsense_agent.ai.provider import LLMProvider
from flowsense_agent.ai.tools.ledger import VaultNotInitializedError
from flowsense_agent.ai.tools.tokens import TokenInfo
from flowsense_agent.config import LLMConfig
from flowsense_agent.core.context import ContextStore
from flowsense_agent.core.models import CompletionResponse, Message, ToolCall, ToolContext, ToolDefinition
from flowsense_agent.core.types import FinishReason

WALLET = "0x1234567890abcdef"
OTHER_WALLET = "0xfedcba0987654321"


class FakeClock:
    """Manually advanced clock usable as ``time.time``/``time.monotonic``."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def text_response(content: str) -> CompletionResponse:
    return CompletionResponse(content=content, finish_reason=FinishReason.STOP)


def tool_response(*calls: tuple[str, str], content: str = "") -> CompletionResponse:
    """A completion requesting ``calls`` given as (tool_name, arguments_json) pairs."""
    return CompletionResponse(
        content=content,
        tool_calls=[ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)],
        finish_reason=FinishReason.TOOL_CALLS,
    )


class ScriptedProvider(LLMProvider):
    """Provider replaying a script of responses or exceptions.

    When the script runs out, ``default`` is returned for every further call.
    Backoff delays are recorded instead of slept.
    """

    name = "scripted"

    def __init__(
        self,
        script: list[Any] | None = None,
        default: CompletionResponse | None = None,
        config: LLMConfig | None = None,
        **kwargs: Any,
    ):
        super().__init__(config or LLMConfig(api_key="test-key", model="test-model"), **kwargs)
        self.script = list(script or [])
        self.default = default
        self.requests: list[tuple[list[Message], str, list[ToolDefinition] | None]] = []
        self.delays: list[float] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def _request(self, messages, system_prompt, tools):
        self.requests.append((list(messages), system_prompt, tools))
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise AssertionError("ScriptedProvider script exhausted")
        if isinstance(item, BaseException):
            raise item
        return item

    async def _backoff(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeLedger:
    """In-memory ledger with per-token balances and fixed quotes."""

    def __init__(
        self,
        balances: dict[str, float] | None = None,
        quotes: dict[tuple[str, str], float] | None = None,
        portfolio: list[dict[str, Any]] | None = None,
        failing: set[str] | None = None,
    ):
        self.balances = balances if balances is not None else {"flow": 42.5}
        self.quotes = quotes if quotes is not None else {("flow", "usdc"): 1.5}
        self.portfolio = portfolio if portfolio is not None else []
        self.failing = failing or set()
        self.calls: list[tuple[str, ...]] = []

    async def get_balance(self, address: str, token: TokenInfo) -> float:
        symbol = token.symbol.lower()
        self.calls.append(("balance", address, symbol))
        if symbol in self.failing:
            raise RuntimeError(f"node unreachable for {symbol}")
        if symbol not in self.balances:
            raise VaultNotInitializedError(f"{token.symbol} vault missing")
        return self.balances[symbol]

    async def get_quote(self, swapper_address: str, token_from: TokenInfo, token_to: TokenInfo, amount: float) -> float:
        pair = (token_from.symbol.lower(), token_to.symbol.lower())
        self.calls.append(("quote", swapper_address, *pair))
        return self.quotes[pair] * amount

    async def get_portfolio(self, address: str) -> list[dict[str, Any]]:
        self.calls.append(("portfolio", address))
        return self.portfolio


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def context_store(clock: FakeClock):
    store = ContextStore(auto_cleanup=False, clock=clock)
    yield store
    store.close()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def tool_context() -> ToolContext:
    return ToolContext(user_address=WALLET, conversation_id="conv-1", metadata={})


@pytest.fixture
def no_sleep(monkeypatch):
    """Make asyncio.sleep return immediately while recording requested delays."""
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def _sleep(seconds: float, *args: Any, **kwargs: Any) -> None:
        delays.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", _sleep)
    return delays
