"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class IntentType(StrEnum):
    SWAP = "swap"
    TRANSFER = "transfer"
    BALANCE = "balance"
    PRICE = "price"
    PORTFOLIO = "portfolio"
    VAULT_INIT = "vault_init"
    UNKNOWN = "unknown"


class FinishReason(StrEnum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"


class ProviderErrorKind(StrEnum):
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    MALFORMED_REQUEST = "malformed_request"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ParamType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class ToolName(StrEnum):
    CHECK_BALANCE = "check_balance"
    GET_PRICE = "get_price"
    VIEW_PORTFOLIO = "view_portfolio"
    BUILD_SWAP = "build_swap_transaction"
    BUILD_TRANSFER = "build_transfer_transaction"
    INITIALIZE_VAULT = "initialize_vault"
