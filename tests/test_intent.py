"""Unit tests for intent parsing helpers."""

import pytest

from flowsense_agent.core.intent import (
    create_unknown_intent,
    is_transaction_intent,
    parse_intent_type,
    parse_tool_result_to_intent,
    validate_parsed_intent,
)
from flowsense_agent.core.models import ParsedIntent, ToolResult
from flowsense_agent.core.types import IntentType


def _ok(data) -> ToolResult:
    return ToolResult(success=True, data=data)


class TestParseToolResult:
    def test_failed_result(self):
        intent = parse_tool_result_to_intent("check_balance", ToolResult(success=False, error="down"), "bal?")
        assert intent.type == IntentType.UNKNOWN
        assert intent.params == {"error": "down"}
        assert intent.confidence == 0.0

    def test_single_balance(self):
        data = {"token": "flow", "balance": 3.0, "symbol": "FLOW", "name": "FlowToken"}
        intent = parse_tool_result_to_intent("check_balance", _ok(data), "bal?")
        assert intent.type == IntentType.BALANCE
        assert intent.params == data
        assert intent.confidence == 1.0

    def test_multi_balance(self):
        data = [{"token": "flow"}, {"token": "usdc"}]
        intent = parse_tool_result_to_intent("check_balance", _ok(data), "bal?")
        assert intent.params == {"balances": data, "totalTokens": 2}

    def test_malformed_balance(self):
        intent = parse_tool_result_to_intent("check_balance", _ok({"token": "flow", "balance": True}), "x")
        assert intent.type == IntentType.UNKNOWN

    def test_price(self):
        data = {"tokenFrom": "flow", "tokenTo": "usdc", "amountIn": 1, "amountOut": 0.7, "price": 0.7, "timestamp": 1}
        intent = parse_tool_result_to_intent("get_price", _ok(data), "price?")
        assert intent.type == IntentType.PRICE
        assert "timestamp" not in intent.params

    def test_portfolio(self):
        data = {"totalTokens": 1, "balances": [{"token": "flow"}]}
        intent = parse_tool_result_to_intent("view_portfolio", _ok(data), "portfolio")
        assert intent.type == IntentType.PORTFOLIO
        assert intent.params["totalValueUSD"] is None

    def test_builder_pass_through(self):
        built = ParsedIntent(IntentType.SWAP, {"amountIn": "1"}, 1.0, "swap")
        assert parse_tool_result_to_intent("build_swap_transaction", _ok(built), "swap") is built

    def test_builder_dict_payload(self):
        data = {"type": "transfer", "params": {"amount": "1"}, "confidence": 0.9, "rawInput": "send"}
        intent = parse_tool_result_to_intent("build_transfer_transaction", _ok(data), "send")
        assert intent == ParsedIntent(IntentType.TRANSFER, {"amount": "1"}, 0.9, "send")

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "swap", "params": "amountIn=1", "confidence": 1.0},
            {"type": "swap", "params": {}, "confidence": None},
        ],
    )
    def test_builder_malformed_payload(self, data):
        intent = parse_tool_result_to_intent("build_swap_transaction", _ok(data), "swap")
        assert intent.type == IntentType.UNKNOWN
        assert intent.params["data"] == data
        assert intent.params["error"]

    def test_unknown_tool(self):
        intent = parse_tool_result_to_intent("weather", _ok("sunny"), "weather?")
        assert intent.type == IntentType.UNKNOWN
        assert intent.confidence == 0.5
        assert intent.params == {"result": "sunny"}


class TestHelpers:
    def test_create_unknown_intent(self):
        assert create_unknown_intent("hi", "Empty message").params == {"reason": "Empty message"}
        assert create_unknown_intent("hi").params == {}

    @pytest.mark.parametrize(
        "text, expected",
        [("swap", IntentType.SWAP), (" VAULT_INIT ", IntentType.VAULT_INIT), ("bogus", IntentType.UNKNOWN)],
    )
    def test_parse_intent_type(self, text, expected):
        assert parse_intent_type(text) == expected

    def test_is_transaction_intent(self):
        assert is_transaction_intent(ParsedIntent(IntentType.VAULT_INIT, {}, 1.0, "x"))
        assert not is_transaction_intent(ParsedIntent(IntentType.BALANCE, {}, 1.0, "x"))


class TestValidateParsedIntent:
    def test_valid_swap(self):
        params = {"amountIn": "1", "tokenIn": "flow", "tokenOut": "usdc", "tokenInInfo": {"a": 1}, "tokenOutInfo": {"a": 1}}
        assert validate_parsed_intent(ParsedIntent(IntentType.SWAP, params, 1.0, "swap")) is None

    def test_missing_swap_field(self):
        intent = ParsedIntent(IntentType.SWAP, {"amountIn": "1"}, 1.0, "swap")
        assert validate_parsed_intent(intent) == "Swap intent must have tokenIn"

    def test_missing_transfer_field(self):
        intent = ParsedIntent(IntentType.TRANSFER, {"amount": "1", "token": "flow"}, 1.0, "send")
        assert validate_parsed_intent(intent) == "Transfer intent must have recipient"

    def test_confidence_range(self):
        intent = ParsedIntent(IntentType.BALANCE, {}, 1.5, "bal")
        assert validate_parsed_intent(intent) == "Confidence must be between 0 and 1"

    def test_raw_input_required(self):
        intent = ParsedIntent(IntentType.BALANCE, {}, 1.0, "")
        assert validate_parsed_intent(intent) == "Intent must have rawInput string"
