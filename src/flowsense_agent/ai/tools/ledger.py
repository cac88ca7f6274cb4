"""Read-only ledger access used by the balance, price and portfolio tools.

The concrete client (chain node queries, DEX quotes) lives outside this
package; tools depend only on the protocol below.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from flowsense_agent.ai.tools.tokens import TokenInfo


class LedgerError(Exception):
    """A ledger query failed."""


class VaultNotInitializedError(LedgerError):
    """The account has no vault for the requested token."""


@runtime_checkable
class LedgerClient(Protocol):
    async def get_balance(self, address: str, token: TokenInfo) -> float:
        """Balance of ``token`` held by ``address``.

        Raises VaultNotInitializedError when the account has no vault for it.
        """
        ...

    async def get_quote(
        self, swapper_address: str, token_from: TokenInfo, token_to: TokenInfo, amount: float
    ) -> float:
        """Amount of ``token_to`` received for ``amount`` of ``token_from``."""
        ...

    async def get_portfolio(self, address: str) -> list[dict[str, Any]]:
        """Non-zero holdings as dicts with symbol, balance, name and typeIdentifier."""
        ...
