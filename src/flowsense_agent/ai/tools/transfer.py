"""Token transfer transaction intent builder."""

from __future__ import annotations

from typing import Any

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.ai.tools.tokens import SUPPORTED_TOKENS, TOKEN_MAP, format_amount
from flowsense_agent.core.models import ParsedIntent, ToolContext, ToolDefinition, ToolExample, ToolParameter, ToolResult
from flowsense_agent.core.types import IntentType, ParamType, ToolName
from flowsense_agent.core.validation import flow_address_error

_DEFINITION = ToolDefinition(
    name=ToolName.BUILD_TRANSFER,
    description=(
        "Build a token transfer transaction. Creates a structured transaction intent that will "
        "transfer tokens from the user to a recipient address on Flow blockchain."
    ),
    parameters=(
        ToolParameter("amount", ParamType.NUMBER, "Amount of tokens to transfer", required=True),
        ToolParameter(
            "token",
            ParamType.STRING,
            "Token symbol to transfer (flow, usdc, usdt)",
            required=True,
            enum=SUPPORTED_TOKENS,
        ),
        ToolParameter(
            "recipient",
            ParamType.STRING,
            "Recipient Flow address (must start with 0x and be 18 characters)",
            required=True,
        ),
    ),
    examples=(
        ToolExample(
            "Send 5 FLOW to 0x123456789abcdef0",
            {"amount": 5, "token": "flow", "recipient": "0x123456789abcdef0"},
            "Returns ParsedIntent for transfer transaction",
        ),
        ToolExample(
            "Transfer 10 USDC to 0xabcdef0123456789",
            {"amount": 10, "token": "usdc", "recipient": "0xabcdef0123456789"},
            "Returns ParsedIntent for transfer transaction",
        ),
    ),
    intent_type=IntentType.TRANSFER,
)


class TransferBuilderTool(Tool):
    @property
    def definition(self) -> ToolDefinition:
        return _DEFINITION

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        amount = self.get_param(params, "amount")
        token = str(self.get_param(params, "token")).lower()
        recipient = str(self.get_param(params, "recipient"))

        if amount <= 0:
            return self.failure("Amount must be positive")
        address_error = flow_address_error(recipient)
        if address_error:
            return self.failure(address_error)
        if recipient.lower() == context.user_address.lower():
            return self.failure("Cannot transfer to yourself")

        amount_text = format_amount(amount)
        intent = ParsedIntent(
            type=IntentType.TRANSFER,
            params={
                "amount": amount_text,
                "token": token,
                "recipient": recipient,
                "tokenInfo": TOKEN_MAP[token].to_dict(),
            },
            confidence=1.0,
            raw_input=context.metadata.get("raw_input") or f"send {amount_text} {token} to {recipient}",
        )
        return self.success(intent)
