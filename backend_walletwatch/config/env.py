"""
Environment variable loading for WalletWatch.

- RPC_URL / SOLANA_RPC_URL: HTTP JSON-RPC endpoint
- WSS_ENDPOINT / SOLANA_WS_URL: WebSocket subscription endpoint
- HELIUS_API_KEY: fallback for both endpoints when neither is set
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is backend_walletwatch/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"


def load_walletwatch_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH, override=False)


def http_to_ws_url(url: str) -> str:
    """Convert https:// or http:// to wss:// or ws:// for the subscription endpoint."""
    s = url.strip()
    if s.startswith("https://"):
        return "wss://" + s[8:]
    if s.startswith("http://"):
        return "ws://" + s[7:]
    return s


def get_solana_rpc_url() -> str:
    """
    Resolve the HTTP RPC URL.
    Order: RPC_URL > SOLANA_RPC_URL > HELIUS_API_KEY > public mainnet.
    """
    load_walletwatch_env()
    url = (os.getenv("RPC_URL") or os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return MAINNET_RPC_URL


def get_solana_ws_url() -> str:
    """
    Resolve the WebSocket URL.
    Order: WSS_ENDPOINT > SOLANA_WS_URL > RPC URL converted to ws(s)://.
    """
    load_walletwatch_env()
    url = (os.getenv("WSS_ENDPOINT") or os.getenv("SOLANA_WS_URL") or "").strip()
    if url:
        return url
    return http_to_ws_url(get_solana_rpc_url())


def mask_api_key(url: str) -> str:
    """Hide an api-key query value for logging."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url
