"""
Application settings and the wallet target registry.

Responsibilities:
- Load the wallet list from WALLETS_FILE (JSON) or WALLETS (comma-separated).
- Validate wallet addresses as Solana public keys.
- Expose typed settings (endpoints, reconnect and fetch tunables) as a frozen
  dataclass for the agent runner.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from solders.pubkey import Pubkey

from backend_walletwatch.config.env import (
    get_solana_rpc_url,
    get_solana_ws_url,
    load_walletwatch_env,
)
from backend_walletwatch.core.exceptions import ConfigError
from backend_walletwatch.solana_listener.models import WalletTarget

DEFAULT_RECONNECT_DELAY_SEC = 2.0
DEFAULT_RECONNECT_MAX_DELAY_SEC = 60.0
DEFAULT_RECONNECT_BACKOFF = 2.0
DEFAULT_FETCH_RETRIES = 3
DEFAULT_FETCH_RETRY_DELAY_SEC = 0.5
DEFAULT_RPC_TIMEOUT_SEC = 15.0
DEFAULT_TX_LOG_MAXLEN = 1000
DEFAULT_SEEN_SIGNATURES_MAX = 10_000
DEFAULT_HEARTBEAT_INTERVAL_SEC = 60.0


@dataclass(frozen=True)
class Settings:
    """Resolved tracker configuration."""

    ws_url: str
    rpc_url: str
    wallets: tuple[WalletTarget, ...]
    reconnect_delay_sec: float = DEFAULT_RECONNECT_DELAY_SEC
    reconnect_max_delay_sec: float = DEFAULT_RECONNECT_MAX_DELAY_SEC
    reconnect_backoff: float = DEFAULT_RECONNECT_BACKOFF
    fetch_retries: int = DEFAULT_FETCH_RETRIES
    fetch_retry_delay_sec: float = DEFAULT_FETCH_RETRY_DELAY_SEC
    rpc_timeout_sec: float = DEFAULT_RPC_TIMEOUT_SEC
    tx_log_maxlen: int = DEFAULT_TX_LOG_MAXLEN
    seen_signatures_max: int = DEFAULT_SEEN_SIGNATURES_MAX
    finalization_per_signature: bool = False
    heartbeat_interval_sec: float = DEFAULT_HEARTBEAT_INTERVAL_SEC

    def __post_init__(self) -> None:
        if not self.ws_url.strip():
            raise ConfigError("ws_url must be non-empty")
        if not self.rpc_url.strip():
            raise ConfigError("rpc_url must be non-empty")
        if not self.wallets:
            raise ConfigError("at least one wallet must be configured")
        if self.reconnect_delay_sec < 0 or self.fetch_retry_delay_sec < 0:
            raise ConfigError("delays must be non-negative")
        if self.reconnect_backoff < 1.0:
            raise ConfigError("reconnect_backoff must be >= 1.0")
        if self.fetch_retries < 0:
            raise ConfigError("fetch_retries must be >= 0")


def is_valid_wallet(w: str) -> bool:
    """Return True if w is a valid Solana wallet (Pubkey) address."""
    try:
        Pubkey.from_string(w.strip())
        return True
    except Exception:
        return False


def _target_from_entry(entry: Any, index: int) -> WalletTarget:
    if isinstance(entry, str):
        name, address = "", entry
        if ":" in entry:
            name, address = entry.split(":", 1)
    elif isinstance(entry, dict):
        name = str(entry.get("name") or "")
        address = str(entry.get("address") or "")
    else:
        raise ConfigError(f"wallet entry #{index} has unsupported type {type(entry).__name__}")
    name, address = name.strip(), address.strip()
    if not address:
        raise ConfigError(f"wallet entry #{index} has no address")
    if not is_valid_wallet(address):
        raise ConfigError(f"Invalid Solana wallet address: {address}")
    return WalletTarget(name=name or f"wallet{index + 1}", address=address)


def load_wallet_targets(entries: Iterable[Any]) -> tuple[WalletTarget, ...]:
    """
    Build the immutable wallet registry from config entries.

    Entries are {"name", "address"} dicts, "name:address" strings or bare
    addresses. Duplicate addresses keep the first entry.
    """
    seen: set[str] = set()
    targets: list[WalletTarget] = []
    for i, entry in enumerate(entries):
        target = _target_from_entry(entry, i)
        if target.address in seen:
            continue
        seen.add(target.address)
        targets.append(target)
    return tuple(targets)


def load_wallets_file(path: str | Path) -> tuple[WalletTarget, ...]:
    """Load wallet targets from a JSON file holding a list of {name, address}."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"wallets file not found: {p}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"wallets file is not valid JSON: {p}: {e}") from e
    if isinstance(data, dict):
        data = data.get("wallets", [])
    if not isinstance(data, list):
        raise ConfigError(f"wallets file must contain a list: {p}")
    return load_wallet_targets(data)


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    """
    Return the current settings resolved from the environment (.env included).

    Raises:
        ConfigError: no wallets configured, invalid address or bad tunable.
    """
    load_walletwatch_env()
    wallets_file = (os.getenv("WALLETS_FILE") or "").strip()
    if wallets_file:
        wallets = load_wallets_file(wallets_file)
    else:
        raw = os.getenv("WALLETS", "")
        wallets = load_wallet_targets(w for w in raw.split(",") if w.strip())
    return Settings(
        ws_url=get_solana_ws_url(),
        rpc_url=get_solana_rpc_url(),
        wallets=wallets,
        reconnect_delay_sec=_env_float("RECONNECT_DELAY_SEC", DEFAULT_RECONNECT_DELAY_SEC),
        reconnect_max_delay_sec=_env_float("RECONNECT_MAX_DELAY_SEC", DEFAULT_RECONNECT_MAX_DELAY_SEC),
        reconnect_backoff=_env_float("RECONNECT_BACKOFF", DEFAULT_RECONNECT_BACKOFF),
        fetch_retries=_env_int("FETCH_RETRIES", DEFAULT_FETCH_RETRIES),
        fetch_retry_delay_sec=_env_float("FETCH_RETRY_DELAY_SEC", DEFAULT_FETCH_RETRY_DELAY_SEC),
        rpc_timeout_sec=_env_float("RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC),
        tx_log_maxlen=_env_int("TX_LOG_MAXLEN", DEFAULT_TX_LOG_MAXLEN),
        seen_signatures_max=_env_int("SEEN_SIGNATURES_MAX", DEFAULT_SEEN_SIGNATURES_MAX),
        finalization_per_signature=_env_bool("FINALIZATION_PER_SIGNATURE"),
        heartbeat_interval_sec=_env_float("HEARTBEAT_INTERVAL_SEC", DEFAULT_HEARTBEAT_INTERVAL_SEC),
    )
