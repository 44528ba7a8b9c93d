"""
Agent worker: wires listener, finality watcher, fetcher and dispatcher into
one asyncio runtime and runs it until SIGINT/SIGTERM.
"""

from backend_walletwatch.agent_worker.runner import TrackerRuntime, run_tracker
from backend_walletwatch.agent_worker.transaction_log import TransactionLog

__all__ = ["TrackerRuntime", "TransactionLog", "run_tracker"]
