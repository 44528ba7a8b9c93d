"""
Data models for the wallet listener pipeline.

WalletTarget → LogNotification → FinalizedSignal → TransactionRecord
(+ TokenBalanceDelta for Raydium). Frozen dataclasses; TransactionRecord is
built from a getTransaction result and discarded after dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Protocol family a transaction is routed to."""

    JUPITER = "Jupiter"
    RAYDIUM = "Raydium"
    PUMP_FUN = "Pump.fun"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class WalletTarget:
    """A named wallet address to monitor."""

    name: str
    address: str

    @property
    def label(self) -> str:
        return f"{self.name} ({self.address})"


@dataclass(frozen=True)
class Subscription:
    """Live logsSubscribe for one wallet; valid for the lifetime of its connection."""

    wallet_address: str
    subscription_id: int
    connection_id: int


@dataclass(frozen=True)
class LogNotification:
    """A transaction signature seen in a wallet's logs at confirmed commitment."""

    signature: str
    wallet: WalletTarget
    slot: int | None = None
    err: Any = None  # None if the transaction succeeded


@dataclass(frozen=True)
class FinalizedSignal:
    """The one signatureNotification delivered when a signature finalizes."""

    signature: str
    slot: int | None = None
    err: Any = None


@dataclass(frozen=True)
class TokenBalance:
    """One entry of meta.preTokenBalances / meta.postTokenBalances."""

    account_index: int | None
    mint: str
    owner: str | None
    ui_amount_string: str | None

    @property
    def amount(self) -> float:
        """UI amount as float; 0.0 when the RPC omits it."""
        if not self.ui_amount_string:
            return 0.0
        try:
            return float(self.ui_amount_string)
        except ValueError:
            return 0.0

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "TokenBalance":
        ui = item.get("uiTokenAmount")
        if not isinstance(ui, dict):
            ui = {}
        ui_str = ui.get("uiAmountString")
        if not isinstance(ui_str, str):
            ui_amount = ui.get("uiAmount")
            ui_str = str(ui_amount) if isinstance(ui_amount, (int, float)) else None
        idx = item.get("accountIndex")
        owner = item.get("owner")
        return cls(
            account_index=idx if isinstance(idx, int) else None,
            mint=item["mint"],
            owner=owner if isinstance(owner, str) else None,
            ui_amount_string=ui_str,
        )


@dataclass(frozen=True)
class TokenBalanceDelta:
    """Change in one (mint, owner) token balance across a transaction."""

    mint: str
    owner: str | None
    difference: float

    def to_dict(self) -> dict[str, Any]:
        return {"mint": self.mint, "owner": self.owner, "difference": self.difference}


@dataclass(frozen=True)
class TransactionRecord:
    """
    Full transaction as fetched by getTransaction, reduced to the fields the
    categorizer and dispatcher need. raw_payload keeps the untouched result.
    """

    signature: str
    raw_payload: dict[str, Any]
    log_messages: tuple[str, ...] = ()
    inner_instructions: tuple[dict[str, Any], ...] = ()
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()
    account_keys: tuple[str, ...] = ()
    slot: int | None = None
    block_time: int | None = None
    err: Any = None
    category: Category | None = None
    wallet: WalletTarget | None = field(default=None, compare=False)

    def with_category(self, category: Category) -> "TransactionRecord":
        return replace(self, category=category)

    def with_wallet(self, wallet: WalletTarget | None) -> "TransactionRecord":
        return replace(self, wallet=wallet)

    @property
    def fee_payer(self) -> str | None:
        return self.account_keys[0] if self.account_keys else None
