"""Supported fungible tokens and their on-chain contract metadata."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from flowsense_agent.core.errors import ValidationError


@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    name: str
    address: str
    storage_path: str
    receiver_path: str
    balance_path: str
    type_identifier: str

    def to_dict(self) -> dict[str, Any]:
        """Wire form consumed by the transaction-signing client."""
        return {
            "name": self.name,
            "address": self.address,
            "storagePath": self.storage_path,
            "receiverPath": self.receiver_path,
            "balancePath": self.balance_path,
            "typeIdentifier": self.type_identifier,
        }


_USDC_BRIDGE = "EVMVMBridgedToken_f1815bd50389c46847f0bda824ec8da914045d14"
_USDT_BRIDGE = "EVMVMBridgedToken_674843c06ff83502ddb4d37c2e09c01cda38cbc8"

TOKEN_MAP: dict[str, TokenInfo] = {
    "flow": TokenInfo(
        symbol="FLOW",
        name="FlowToken",
        address="0x1654653399040a61",
        storage_path="/storage/flowTokenVault",
        receiver_path="/public/flowTokenReceiver",
        balance_path="/public/flowTokenBalance",
        type_identifier="A.1654653399040a61.FlowToken.Vault",
    ),
    "usdc": TokenInfo(
        symbol="USDC",
        name="stgUSDC",
        address="0x1e4aa0b87d10b141",
        storage_path=f"/storage/{_USDC_BRIDGE}Vault",
        receiver_path=f"/public/{_USDC_BRIDGE}Receiver",
        balance_path=f"/public/{_USDC_BRIDGE}Balance",
        type_identifier=f"A.1e4aa0b87d10b141.{_USDC_BRIDGE}.Vault",
    ),
    "usdt": TokenInfo(
        symbol="USDT",
        name="stgUSDT",
        address="0x1e4aa0b87d10b141",
        storage_path=f"/storage/{_USDT_BRIDGE}Vault",
        receiver_path=f"/public/{_USDT_BRIDGE}Receiver",
        balance_path=f"/public/{_USDT_BRIDGE}Balance",
        type_identifier=f"A.1e4aa0b87d10b141.{_USDT_BRIDGE}.Vault",
    ),
}

SUPPORTED_TOKENS: tuple[str, ...] = tuple(TOKEN_MAP)

_ALIASES = {
    "flowtoken": "flow",
    "stgusdc": "usdc",
    "usd coin": "usdc",
    "usdcoin": "usdc",
    "stgusdt": "usdt",
    "tether": "usdt",
}


def normalize_token_symbol(symbol: str) -> str:
    cleaned = symbol.strip().lower().lstrip("$#")
    return _ALIASES.get(cleaned, cleaned)


def resolve_token(symbol: str) -> TokenInfo:
    info = TOKEN_MAP.get(normalize_token_symbol(symbol))
    if info is None:
        raise ValidationError(
            f"Unsupported token: {symbol}. Supported tokens: {', '.join(SUPPORTED_TOKENS)}"
        )
    return info


def format_amount(amount: float) -> str:
    """Render an amount without float noise or exponent notation ("10", "0.5")."""
    return format(Decimal(str(amount)).normalize(), "f")
