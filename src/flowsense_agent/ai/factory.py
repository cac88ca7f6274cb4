"""Construction helpers for providers and the default tool set."""

from __future__ import annotations

from typing import Any, Optional

from flowsense_agent.ai.provider import LLMProvider
from flowsense_agent.ai.tools.balance import BalanceTool
from flowsense_agent.ai.tools.ledger import LedgerClient
from flowsense_agent.ai.tools.portfolio import PortfolioTool
from flowsense_agent.ai.tools.price import PriceTool
from flowsense_agent.ai.tools.registry import ToolRegistry
from flowsense_agent.ai.tools.swap import SwapBuilderTool
from flowsense_agent.ai.tools.transfer import TransferBuilderTool
from flowsense_agent.ai.tools.vault import VaultInitTool
from flowsense_agent.config import LLMConfig
from flowsense_agent.core.cache import BoundedCache, CacheSet
from flowsense_agent.core.errors import ConfigurationError
from flowsense_agent.log import get_logger

logger = get_logger(__name__)


def create_provider(
    config: LLMConfig,
    response_cache: Optional[BoundedCache[Any]] = None,
    cache_ttl: float | None = None,
) -> LLMProvider:
    """Create the reasoning-service backend named by ``config.provider``."""
    match config.provider.lower():
        case "openai":
            from flowsense_agent.ai.openai_provider import OpenAIProvider

            provider: LLMProvider = OpenAIProvider(config, response_cache, cache_ttl)
        case "anthropic":
            from flowsense_agent.ai.anthropic_provider import AnthropicProvider

            provider = AnthropicProvider(config, response_cache, cache_ttl)
        case _:
            raise ConfigurationError(
                f"Unknown LLM provider: {config.provider}", {"supported": ["openai", "anthropic"]}
            )
    logger.info("provider_created", provider=provider.name, model=config.model)
    return provider


def create_default_tool_registry(
    ledger: LedgerClient | None = None, caches: CacheSet | None = None
) -> ToolRegistry:
    """Registry with the transaction builders and, given a ledger, the read tools."""
    registry = ToolRegistry()
    if ledger is not None:
        registry.register_all(
            [
                BalanceTool(ledger, caches.balance if caches else None),
                PriceTool(ledger, caches.price if caches else None),
                PortfolioTool(ledger, caches.portfolio if caches else None),
            ]
        )
    else:
        logger.warning("ledger_not_configured", skipped=["check_balance", "get_price", "view_portfolio"])
    registry.register_all([SwapBuilderTool(), TransferBuilderTool(), VaultInitTool()])
    return registry
