"""
Analytics: categorize finalized transactions by program and dispatch them
to protocol decoders.
"""

from backend_walletwatch.analytics.categorizer import categorize
from backend_walletwatch.analytics.dispatcher import (
    Dispatcher,
    SeenSignatures,
    calculate_balance_deltas,
)

__all__ = [
    "Dispatcher",
    "SeenSignatures",
    "calculate_balance_deltas",
    "categorize",
]
