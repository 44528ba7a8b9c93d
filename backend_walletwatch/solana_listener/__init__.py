"""
Solana wallet listener package.

Keeps a log subscription open per watched wallet, extracts transaction
signatures from notifications and waits for each one to finalize before
handing it to ingestion.
"""

from backend_walletwatch.solana_listener.finalization import FinalizationWatcher
from backend_walletwatch.solana_listener.listener import ConnectionSupervisor, LogSubscriber
from backend_walletwatch.solana_listener.models import (
    Category,
    FinalizedSignal,
    LogNotification,
    Subscription,
    TokenBalance,
    TokenBalanceDelta,
    TransactionRecord,
    WalletTarget,
)

__all__ = [
    "Category",
    "ConnectionSupervisor",
    "FinalizationWatcher",
    "FinalizedSignal",
    "LogNotification",
    "LogSubscriber",
    "Subscription",
    "TokenBalance",
    "TokenBalanceDelta",
    "TransactionRecord",
    "WalletTarget",
]
