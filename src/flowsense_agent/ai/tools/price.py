"""DEX price quote tool."""

from __future__ import annotations

import time
from typing import Any

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.ai.tools.ledger import LedgerClient, LedgerError
from flowsense_agent.ai.tools.tokens import SUPPORTED_TOKENS, TOKEN_MAP
from flowsense_agent.core.cache import BoundedCache, create_cache_key
from flowsense_agent.core.errors import ToolError
from flowsense_agent.core.models import ToolContext, ToolDefinition, ToolExample, ToolParameter, ToolResult
from flowsense_agent.core.types import ParamType, ToolName

_DEFINITION = ToolDefinition(
    name=ToolName.GET_PRICE,
    description=(
        "Get the current price of a token in terms of another token from IncrementFi DEX. "
        "Returns the amount of tokenTo you would receive for a given amount of tokenFrom."
    ),
    parameters=(
        ToolParameter(
            name="tokenFrom",
            type=ParamType.STRING,
            description="Source token symbol (flow, usdc, usdt)",
            required=True,
            enum=SUPPORTED_TOKENS,
        ),
        ToolParameter(
            name="tokenTo",
            type=ParamType.STRING,
            description="Target token symbol (flow, usdc, usdt)",
            required=True,
            enum=SUPPORTED_TOKENS,
        ),
        ToolParameter(
            name="amount",
            type=ParamType.NUMBER,
            description="Amount of source token to get price for",
            default=1,
        ),
    ),
    examples=(
        ToolExample(
            "What's the price of FLOW in USDC?",
            {"tokenFrom": "flow", "tokenTo": "usdc", "amount": 1},
            "Returns current FLOW/USDC price",
        ),
        ToolExample(
            "How much USDC would I get for 10 FLOW?",
            {"tokenFrom": "flow", "tokenTo": "usdc", "amount": 10},
            "Returns USDC amount for 10 FLOW",
        ),
    ),
)


class PriceTool(Tool):
    def __init__(self, ledger: LedgerClient, cache: BoundedCache[Any] | None = None):
        self._ledger = ledger
        self._cache = cache

    @property
    def definition(self) -> ToolDefinition:
        return _DEFINITION

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        token_from = str(self.get_param(params, "tokenFrom")).lower()
        token_to = str(self.get_param(params, "tokenTo")).lower()
        amount = self.get_param(params, "amount", 1)

        if amount <= 0:
            return self.failure("Amount must be positive")
        if token_from == token_to:
            return self.failure("Cannot get price for same token")

        key = create_cache_key("price", token_from, token_to, amount)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return self.success(cached, cached=True)

        try:
            amount_out = float(
                await self._ledger.get_quote(
                    context.user_address, TOKEN_MAP[token_from], TOKEN_MAP[token_to], amount
                )
            )
        except LedgerError as e:
            raise ToolError(f"Failed to fetch price: {e}") from e

        data = {
            "tokenFrom": token_from,
            "tokenTo": token_to,
            "amountIn": amount,
            "amountOut": amount_out,
            "price": amount_out / amount,
            "timestamp": time.time(),
        }
        if self._cache is not None:
            self._cache.set(key, data)
        return self.success(data)
