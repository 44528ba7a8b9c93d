"""
Configuration management for the WalletWatch tracker.

Loads and validates settings from environment variables, an optional .env
file and an optional wallets JSON file. Exposes a single source of truth for
endpoints, the wallet list and retry tunables.
"""

from backend_walletwatch.config.settings import Settings, get_settings, load_wallet_targets  # noqa: F401

__all__ = ["Settings", "get_settings", "load_wallet_targets"]
