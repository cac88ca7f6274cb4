"""Token vault initialization intent builder."""

from __future__ import annotations

from typing import Any

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.core.models import ParsedIntent, ToolContext, ToolDefinition, ToolExample, ToolParameter, ToolResult
from flowsense_agent.core.types import IntentType, ParamType, ToolName

VAULT_TOKENS = ("usdc", "usdt")

_DEFINITION = ToolDefinition(
    name=ToolName.INITIALIZE_VAULT,
    description=(
        'Initialize a token vault for USDC or USDT. ONLY use this when the user EXPLICITLY asks to '
        '"initialize vault", "setup vault", or "create vault". DO NOT use this for swaps or '
        "transfers - use build_swap_transaction or build_transfer_transaction instead."
    ),
    parameters=(
        ToolParameter(
            "token",
            ParamType.STRING,
            "Token symbol to initialize vault for (usdc, usdt)",
            required=True,
            enum=VAULT_TOKENS,
        ),
    ),
    examples=(
        ToolExample("Initialize USDC vault", {"token": "usdc"}, "Returns ParsedIntent for vault initialization"),
        ToolExample("Set up my USDT wallet", {"token": "usdt"}, "Returns ParsedIntent for vault initialization"),
    ),
    intent_type=IntentType.VAULT_INIT,
)


class VaultInitTool(Tool):
    @property
    def definition(self) -> ToolDefinition:
        return _DEFINITION

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        token = str(self.get_param(params, "token")).lower()
        if token not in VAULT_TOKENS:
            return self.failure(f"Unsupported token: {token}. Only USDC and USDT vaults can be initialized.")

        return self.success(
            ParsedIntent(
                type=IntentType.VAULT_INIT,
                params={"token": token},
                confidence=1.0,
                raw_input=f"Initialize {token.upper()} vault",
            )
        )
