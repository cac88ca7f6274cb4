"""Wallet portfolio overview tool."""

from __future__ import annotations

from typing import Any

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.ai.tools.ledger import LedgerClient, LedgerError
from flowsense_agent.core.cache import BoundedCache, create_cache_key
from flowsense_agent.core.errors import ToolError
from flowsense_agent.core.models import ToolContext, ToolDefinition, ToolExample, ToolResult
from flowsense_agent.core.types import ToolName

_DEFINITION = ToolDefinition(
    name=ToolName.VIEW_PORTFOLIO,
    description=(
        "Get a complete overview of all token balances in the user's Flow wallet. "
        "Returns all tokens with non-zero balances."
    ),
    examples=(
        ToolExample("Show my portfolio", {}, "Returns all token balances"),
        ToolExample("What tokens do I have?", {}, "Returns list of all tokens with balances"),
    ),
)


class PortfolioTool(Tool):
    def __init__(self, ledger: LedgerClient, cache: BoundedCache[Any] | None = None):
        self._ledger = ledger
        self._cache = cache

    @property
    def definition(self) -> ToolDefinition:
        return _DEFINITION

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        key = create_cache_key("portfolio", context.user_address)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return self.success(cached, cached=True)

        try:
            holdings = await self._ledger.get_portfolio(context.user_address)
        except LedgerError as e:
            raise ToolError(f"Failed to fetch portfolio: {e}") from e

        balances = [
            {
                "token": str(item["symbol"]).lower(),
                "balance": float(item["balance"]),
                "symbol": item["symbol"],
                "name": item.get("name", item["symbol"]),
                "typeIdentifier": item.get("typeIdentifier"),
            }
            for item in holdings
        ]
        data = {"totalTokens": len(balances), "balances": balances}
        if self._cache is not None:
            self._cache.set(key, data)
        return self.success(data)
