"""
Protocol decoders: Pump.fun trade events, Raydium balance-delta swaps and
Jupiter swap summaries. Each matches the contract the Dispatcher calls.
"""

from backend_walletwatch.decoders.jupiter import JupiterDecoder, summarize_swap
from backend_walletwatch.decoders.pumpfun import (
    PumpfunTrade,
    decode_and_format_transaction,
    decode_trade_event,
)
from backend_walletwatch.decoders.raydium import (
    RaydiumSwap,
    classify_and_log_transaction,
    classify_raydium_swaps,
)

__all__ = [
    "JupiterDecoder",
    "PumpfunTrade",
    "RaydiumSwap",
    "classify_and_log_transaction",
    "classify_raydium_swaps",
    "decode_and_format_transaction",
    "decode_trade_event",
    "summarize_swap",
]
