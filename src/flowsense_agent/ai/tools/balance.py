"""Token balance lookup tool."""

from __future__ import annotations

from typing import Any

from flowsense_agent.ai.tools.base import Tool
from flowsense_agent.ai.tools.ledger import LedgerClient, LedgerError, VaultNotInitializedError
from flowsense_agent.ai.tools.tokens import SUPPORTED_TOKENS, TOKEN_MAP
from flowsense_agent.core.cache import BoundedCache, create_cache_key
from flowsense_agent.core.errors import ToolError
from flowsense_agent.core.models import ToolContext, ToolDefinition, ToolExample, ToolParameter, ToolResult
from flowsense_agent.core.types import ParamType, ToolName
from flowsense_agent.log import get_logger

logger = get_logger(__name__)

_DEFINITION = ToolDefinition(
    name=ToolName.CHECK_BALANCE,
    description=(
        "Check the balance of a specific token in the user's Flow wallet. "
        "Can check FLOW, USDC, or USDT balances."
    ),
    parameters=(
        ToolParameter(
            name="token",
            type=ParamType.STRING,
            description=(
                "Token symbol to check balance for (flow, usdc, usdt). "
                'Leave empty or use "all" to check all tokens.'
            ),
            enum=(*SUPPORTED_TOKENS, "all"),
        ),
    ),
    examples=(
        ToolExample("What's my FLOW balance?", {"token": "flow"}, "Returns FLOW balance"),
        ToolExample("What's my balance?", {}, "Returns all token balances"),
    ),
)


class BalanceTool(Tool):
    def __init__(self, ledger: LedgerClient, cache: BoundedCache[Any] | None = None):
        self._ledger = ledger
        self._cache = cache

    @property
    def definition(self) -> ToolDefinition:
        return _DEFINITION

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        token = str(params.get("token") or "all").lower()
        if token == "all":
            return await self._check_all(context.user_address)

        try:
            data, warnings, cached = await self._check_token(token, context.user_address)
        except LedgerError as e:
            raise ToolError(f"Failed to check balance: {e}") from e
        return self.success(data, warnings=warnings, cached=cached)

    async def _check_token(self, token: str, address: str) -> tuple[dict[str, Any], list[str], bool]:
        info = TOKEN_MAP.get(token)
        if info is None:
            raise ToolError(f"Unsupported token: {token}. Supported tokens: {', '.join(SUPPORTED_TOKENS)}")

        key = create_cache_key("balance", address, token)
        if self._cache is not None:
            hit = self._cache.get(key)
            if hit is not None:
                data, warnings = hit
                return data, list(warnings), True

        warnings: list[str] = []
        try:
            balance = float(await self._ledger.get_balance(address, info))
        except VaultNotInitializedError:
            balance = 0.0
            warnings.append(f"{info.symbol} vault not initialized, balance is 0")

        data = {"token": token, "balance": balance, "symbol": info.symbol, "name": info.name}
        if self._cache is not None:
            self._cache.set(key, (data, tuple(warnings)))
        return data, warnings, False

    async def _check_all(self, address: str) -> ToolResult:
        balances: list[dict[str, Any]] = []
        warnings: list[str] = []
        for token, info in TOKEN_MAP.items():
            try:
                data, token_warnings, _ = await self._check_token(token, address)
            except Exception as e:
                logger.warning("balance_check_failed", token=token, error=str(e))
                warnings.append(f"Failed to check {info.symbol}: {e}")
                continue
            balances.append(data)
            warnings.extend(token_warnings)
        return self.success(balances, warnings=warnings)
