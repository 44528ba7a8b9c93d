"""
Structured logging for Backend WalletWatch.

JSON logs with timestamp, wallet_id, signature and event_type.
Use get_logger() in every module for aggregation-friendly output.
"""

from backend_walletwatch.walletwatch_logging.logger import bind_wallet, get_logger, short_id

__all__ = ["bind_wallet", "get_logger", "short_id"]
