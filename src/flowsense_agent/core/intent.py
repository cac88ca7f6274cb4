"""Conversion of tool results into ParsedIntent values."""

from __future__ import annotations

from typing import Any

from flowsense_agent.core.models import ParsedIntent, ToolResult
from flowsense_agent.core.types import IntentType, ToolName


def create_unknown_intent(raw_input: str, reason: str | None = None) -> ParsedIntent:
    return ParsedIntent(
        type=IntentType.UNKNOWN,
        params={"reason": reason} if reason else {},
        confidence=0.0,
        raw_input=raw_input,
    )


def parse_intent_type(text: str) -> IntentType:
    try:
        return IntentType(text.strip().lower())
    except ValueError:
        return IntentType.UNKNOWN


def parse_tool_result_to_intent(tool_name: str, result: ToolResult, raw_input: str) -> ParsedIntent:
    """Synthesize an intent from the outcome of one tool execution."""
    if not result.success:
        return ParsedIntent(
            type=IntentType.UNKNOWN,
            params={"error": result.error},
            confidence=0.0,
            raw_input=raw_input,
        )

    data = result.data
    if isinstance(data, ParsedIntent):
        return data

    match tool_name:
        case ToolName.CHECK_BALANCE:
            return _parse_balance(data, raw_input)
        case ToolName.GET_PRICE:
            return _parse_price(data, raw_input)
        case ToolName.VIEW_PORTFOLIO:
            return _parse_portfolio(data, raw_input)
        case ToolName.BUILD_SWAP | ToolName.BUILD_TRANSFER | ToolName.INITIALIZE_VAULT:
            if isinstance(data, dict):
                try:
                    return ParsedIntent.from_dict(data)
                except (TypeError, ValueError) as e:
                    return _unknown(raw_input, data=data, error=str(e))
            return _unknown(raw_input, data=data)
        case _:
            return ParsedIntent(
                type=IntentType.UNKNOWN,
                params={"result": data},
                confidence=0.5,
                raw_input=raw_input,
            )


def validate_parsed_intent(intent: ParsedIntent) -> str | None:
    """Return the first structural problem with ``intent``, or None."""
    if not isinstance(intent.confidence, (int, float)):
        return "Intent must have a confidence score"
    if not 0 <= intent.confidence <= 1:
        return "Confidence must be between 0 and 1"
    if not isinstance(intent.params, dict):
        return "Intent must have params object"
    if not intent.raw_input:
        return "Intent must have rawInput string"

    if intent.type == IntentType.SWAP:
        required = ("amountIn", "tokenIn", "tokenOut", "tokenInInfo", "tokenOutInfo")
    elif intent.type == IntentType.TRANSFER:
        required = ("amount", "token", "recipient", "tokenInfo")
    else:
        return None

    for key in required:
        if not intent.params.get(key):
            return f"{intent.type.capitalize()} intent must have {key}"
    return None


def _unknown(raw_input: str, **params: Any) -> ParsedIntent:
    return ParsedIntent(type=IntentType.UNKNOWN, params=params, confidence=0.0, raw_input=raw_input)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_balance(data: Any, raw_input: str) -> ParsedIntent:
    if (
        isinstance(data, dict)
        and isinstance(data.get("token"), str)
        and _is_number(data.get("balance"))
        and isinstance(data.get("symbol"), str)
    ):
        return ParsedIntent(
            type=IntentType.BALANCE,
            params={
                "token": data["token"],
                "balance": data["balance"],
                "symbol": data["symbol"],
                "name": data.get("name"),
            },
            confidence=1.0,
            raw_input=raw_input,
        )
    if isinstance(data, list):
        return ParsedIntent(
            type=IntentType.BALANCE,
            params={"balances": data, "totalTokens": len(data)},
            confidence=1.0,
            raw_input=raw_input,
        )
    return _unknown(raw_input, data=data)


def _parse_price(data: Any, raw_input: str) -> ParsedIntent:
    keys = ("tokenFrom", "tokenTo", "amountIn", "amountOut", "price")
    if (
        isinstance(data, dict)
        and isinstance(data.get("tokenFrom"), str)
        and isinstance(data.get("tokenTo"), str)
        and all(_is_number(data.get(k)) for k in keys[2:])
    ):
        return ParsedIntent(
            type=IntentType.PRICE,
            params={k: data[k] for k in keys},
            confidence=1.0,
            raw_input=raw_input,
        )
    return _unknown(raw_input, data=data)


def _parse_portfolio(data: Any, raw_input: str) -> ParsedIntent:
    if isinstance(data, dict) and _is_number(data.get("totalTokens")) and isinstance(data.get("balances"), list):
        return ParsedIntent(
            type=IntentType.PORTFOLIO,
            params={
                "balances": data["balances"],
                "totalTokens": data["totalTokens"],
                "totalValueUSD": data.get("totalValueUSD"),
            },
            confidence=1.0,
            raw_input=raw_input,
        )
    return _unknown(raw_input, data=data)


TRANSACTION_INTENTS = frozenset({IntentType.SWAP, IntentType.TRANSFER, IntentType.VAULT_INIT})


def is_transaction_intent(intent: ParsedIntent) -> bool:
    """True when ``intent`` describes a transaction the user still has to sign."""
    return intent.type in TRANSACTION_INTENTS
