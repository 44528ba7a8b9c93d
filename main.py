"""
Main entrypoint: run the wallet tracker until SIGINT/SIGTERM.

Env: WALLETS or WALLETS_FILE, RPC_URL, WSS_ENDPOINT (see .env.example),
LOG_LEVEL, LOG_FORMAT and the retry tunables documented in config/settings.py.
"""

# Configure structured JSON logging before other imports that may log
from backend_walletwatch.walletwatch_logging import get_logger  # noqa: F401

from backend_walletwatch.agent_worker.runner import main

if __name__ == "__main__":
    main()
