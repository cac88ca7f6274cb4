"""Unit tests for ToolRegistry and the default tool factory."""

import pytest

from flowsense_agent.ai.factory import create_default_tool_registry, create_provider
from flowsense_agent.ai.tools.swap import SwapBuilderTool
from flowsense_agent.ai.tools.registry import ToolRegistry
from flowsense_agent.ai.tools.transfer import TransferBuilderTool
from flowsense_agent.ai.tools.vault import VaultInitTool
from flowsense_agent.config import LLMConfig
from flowsense_agent.core.errors import ConfigurationError
from flowsense_agent.core.models import ToolDefinition, ToolParameter

from conftest import FakeLedger


class DefinedTool(SwapBuilderTool):
    """Swap builder with an overridable definition."""

    def __init__(self, definition: ToolDefinition):
        self._definition = definition

    @property
    def definition(self) -> ToolDefinition:
        return self._definition


class TestRegister:
    def test_register_and_lookup(self):
        registry = ToolRegistry()
        tool = SwapBuilderTool()
        registry.register(tool)

        assert registry.get("build_swap_transaction") is tool
        assert "build_swap_transaction" in registry
        assert registry.get("missing") is None
        assert len(registry) == 1

    def test_duplicate_name_rejected(self):
        registry = ToolRegistry()
        registry.register(SwapBuilderTool())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(SwapBuilderTool())

    @pytest.mark.parametrize(
        "definition, message",
        [
            (ToolDefinition(name="", description="x"), "Tool name is required"),
            (ToolDefinition(name="t", description=" "), "must have a description"),
            (
                ToolDefinition(name="t", description="x", parameters=(ToolParameter("", "string", "d"),)),
                "parameter without name",
            ),
            (
                ToolDefinition(name="t", description="x", parameters=(ToolParameter("p", "string", ""),)),
                "must have a description",
            ),
            (
                ToolDefinition(name="t", description="x", parameters=(ToolParameter("p", "integer", "d"),)),
                "invalid type 'integer'",
            ),
        ],
    )
    def test_invalid_definitions(self, definition, message):
        with pytest.raises(ValueError, match=message):
            ToolRegistry().register(DefinedTool(definition))

    def test_definitions_follow_registration_order(self):
        registry = ToolRegistry()
        registry.register_all([VaultInitTool(), SwapBuilderTool(), TransferBuilderTool()])

        assert [d.name for d in registry.get_definitions()] == [
            "initialize_vault",
            "build_swap_transaction",
            "build_transfer_transaction",
        ]
        assert registry.names() == [t.name for t in registry.get_all()]

    def test_unregister_and_clear(self):
        registry = ToolRegistry()
        registry.register_all([SwapBuilderTool(), VaultInitTool()])

        assert registry.unregister("initialize_vault") is True
        assert registry.unregister("initialize_vault") is False
        registry.clear()
        assert registry.count() == 0

    def test_stats(self):
        registry = ToolRegistry()
        registry.register_all([SwapBuilderTool(), VaultInitTool()])

        stats = registry.stats()
        assert stats.total_tools == 2
        assert stats.total_parameters == 5
        assert stats.average_parameters_per_tool == 2.5

    def test_empty_stats(self):
        assert ToolRegistry().stats().average_parameters_per_tool == 0.0


class TestFactory:
    def test_default_registry_without_ledger(self):
        registry = create_default_tool_registry()
        assert registry.names() == ["build_swap_transaction", "build_transfer_transaction", "initialize_vault"]

    def test_default_registry_with_ledger(self):
        registry = create_default_tool_registry(FakeLedger())
        assert registry.names()[:3] == ["check_balance", "get_price", "view_portfolio"]
        assert registry.count() == 6

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown LLM provider: gemini"):
            create_provider(LLMConfig(provider="gemini", api_key="k"))

    def test_creates_openai_provider(self):
        provider = create_provider(LLMConfig(provider="openai", api_key="sk-test", model="gpt-4"))
        assert provider.name == "openai"
        assert provider.model == "gpt-4"

    def test_creates_anthropic_provider(self):
        provider = create_provider(LLMConfig(provider="Anthropic", api_key="sk-ant-test", model="claude"))
        assert provider.name == "anthropic"
