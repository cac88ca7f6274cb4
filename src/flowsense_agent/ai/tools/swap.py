"""Swap transaction intent builder."""

from __future__ import annotations

from typing import Any

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.ai.tools.tokens import SUPPORTED_TOKENS, TOKEN_MAP, format_amount
from flowsense_agent.core.models import ParsedIntent, ToolContext, ToolDefinition, ToolExample, ToolParameter, ToolResult
from flowsense_agent.core.types import IntentType, ParamType, ToolName

MAX_SLIPPAGE = 50

_DEFINITION = ToolDefinition(
    name=ToolName.BUILD_SWAP,
    description=(
        "Build a token swap transaction using Flow Actions. Creates a structured transaction "
        "intent that will swap tokenIn to tokenOut via IncrementFi DEX."
    ),
    parameters=(
        ToolParameter("amountIn", ParamType.NUMBER, "Amount of input token to swap", required=True),
        ToolParameter(
            "tokenIn",
            ParamType.STRING,
            "Input token symbol (flow, usdc, usdt)",
            required=True,
            enum=SUPPORTED_TOKENS,
        ),
        ToolParameter(
            "tokenOut",
            ParamType.STRING,
            "Output token symbol (flow, usdc, usdt)",
            required=True,
            enum=SUPPORTED_TOKENS,
        ),
        ToolParameter("slippage", ParamType.NUMBER, "Slippage tolerance in percentage (default: 1)", default=1),
    ),
    examples=(
        ToolExample(
            "Swap 10 FLOW to USDC",
            {"amountIn": 10, "tokenIn": "flow", "tokenOut": "usdc"},
            "Returns ParsedIntent for swap transaction",
        ),
        ToolExample(
            "Exchange 50 USDC for FLOW",
            {"amountIn": 50, "tokenIn": "usdc", "tokenOut": "flow"},
            "Returns ParsedIntent for swap transaction",
        ),
    ),
    intent_type=IntentType.SWAP,
)


class SwapBuilderTool(Tool):
    @property
    def definition(self) -> ToolDefinition:
        return _DEFINITION

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        amount_in = self.get_param(params, "amountIn")
        token_in = str(self.get_param(params, "tokenIn")).lower()
        token_out = str(self.get_param(params, "tokenOut")).lower()
        slippage = self.get_param(params, "slippage", 1)

        if amount_in <= 0:
            return self.failure("Amount must be positive")
        if not 0 <= slippage <= MAX_SLIPPAGE:
            return self.failure(f"Slippage must be between 0 and {MAX_SLIPPAGE}%")
        if token_in == token_out:
            return self.failure("Cannot swap same token")

        amount_text = format_amount(amount_in)
        intent = ParsedIntent(
            type=IntentType.SWAP,
            params={
                "amountIn": amount_text,
                "tokenIn": token_in,
                "tokenOut": token_out,
                "tokenInInfo": TOKEN_MAP[token_in].to_dict(),
                "tokenOutInfo": TOKEN_MAP[token_out].to_dict(),
                "slippage": slippage,
            },
            confidence=1.0,
            raw_input=context.metadata.get("raw_input") or f"swap {amount_text} {token_in} to {token_out}",
        )
        return self.success(intent)
