"""
Configuration: wallet registry loading and validation, endpoint resolution,
tunables from the environment.
"""

from __future__ import annotations

import json

import pytest

from backend_walletwatch.config import Settings, get_settings, load_wallet_targets
from backend_walletwatch.config.env import get_solana_rpc_url, get_solana_ws_url, http_to_ws_url, mask_api_key
from backend_walletwatch.config.settings import is_valid_wallet, load_wallets_file
from backend_walletwatch.core.exceptions import ConfigError
from backend_walletwatch.solana_listener.models import WalletTarget

from conftest import VALID_WALLET, VALID_WALLET_2


def test_is_valid_wallet():
    assert is_valid_wallet(VALID_WALLET)
    assert is_valid_wallet(f"  {VALID_WALLET} ")
    assert not is_valid_wallet("not-a-wallet")
    assert not is_valid_wallet("")


def test_load_wallet_targets_entry_forms():
    """name:address strings, bare addresses and dicts; unnamed entries get walletN."""
    targets = load_wallet_targets(
        [f"main:{VALID_WALLET}", VALID_WALLET_2, {"name": "dup", "address": VALID_WALLET}]
    )
    assert targets == (
        WalletTarget(name="main", address=VALID_WALLET),
        WalletTarget(name="wallet2", address=VALID_WALLET_2),
    )


@pytest.mark.parametrize(
    "entry",
    ["main:not-a-wallet", {"name": "x"}, 42],
    ids=["invalid_address", "no_address", "bad_type"],
)
def test_load_wallet_targets_rejects(entry):
    with pytest.raises(ConfigError):
        load_wallet_targets([entry])


def test_invalid_address_message():
    with pytest.raises(ConfigError, match="Invalid Solana wallet address: nope"):
        load_wallet_targets(["nope"])


def test_load_wallets_file(tmp_path):
    path = tmp_path / "wallets.json"
    path.write_text(json.dumps({"wallets": [{"name": "a", "address": VALID_WALLET}]}), encoding="utf-8")
    assert load_wallets_file(path) == (WalletTarget(name="a", address=VALID_WALLET),)

    path.write_text(json.dumps([VALID_WALLET_2]), encoding="utf-8")
    assert [t.address for t in load_wallets_file(path)] == [VALID_WALLET_2]


def test_load_wallets_file_errors(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_wallets_file(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid JSON"):
        load_wallets_file(bad)
    scalar = tmp_path / "scalar.json"
    scalar.write_text("3", encoding="utf-8")
    with pytest.raises(ConfigError, match="must contain a list"):
        load_wallets_file(scalar)


def test_get_settings_from_env(clean_env):
    clean_env.setenv("RPC_URL", "https://rpc.example/?api-key=k")
    clean_env.setenv("WALLETS", f"one:{VALID_WALLET}, {VALID_WALLET_2} ,")
    clean_env.setenv("FETCH_RETRIES", "5")
    clean_env.setenv("RECONNECT_BACKOFF", "1.5")
    clean_env.setenv("FINALIZATION_PER_SIGNATURE", "yes")
    clean_env.setenv("HEARTBEAT_INTERVAL_SEC", "0")
    s = get_settings()
    assert s.rpc_url == "https://rpc.example/?api-key=k"
    assert s.ws_url == "wss://rpc.example/?api-key=k"
    assert [w.name for w in s.wallets] == ["one", "wallet2"]
    assert s.wallets[0].label == f"one ({VALID_WALLET})"
    assert s.fetch_retries == 5
    assert s.reconnect_backoff == 1.5
    assert s.finalization_per_signature is True
    assert s.heartbeat_interval_sec == 0.0
    assert s.tx_log_maxlen == 1000


def test_get_settings_wallets_file_wins(clean_env, tmp_path):
    path = tmp_path / "w.json"
    path.write_text(json.dumps([{"name": "f", "address": VALID_WALLET_2}]), encoding="utf-8")
    clean_env.setenv("WALLETS_FILE", str(path))
    clean_env.setenv("WALLETS", VALID_WALLET)
    assert [w.address for w in get_settings().wallets] == [VALID_WALLET_2]


def test_get_settings_requires_wallets(clean_env):
    with pytest.raises(ConfigError, match="at least one wallet"):
        get_settings()


def test_get_settings_bad_tunable(clean_env):
    clean_env.setenv("WALLETS", VALID_WALLET)
    clean_env.setenv("FETCH_RETRIES", "three")
    with pytest.raises(ConfigError, match="FETCH_RETRIES"):
        get_settings()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ws_url": " "},
        {"wallets": ()},
        {"reconnect_delay_sec": -1},
        {"reconnect_backoff": 0.5},
        {"fetch_retries": -1},
    ],
)
def test_settings_validation(kwargs):
    base = {"ws_url": "wss://x", "rpc_url": "https://x", "wallets": (WalletTarget("a", VALID_WALLET),)}
    base.update(kwargs)
    with pytest.raises(ConfigError):
        Settings(**base)


def test_endpoint_resolution(clean_env):
    assert get_solana_rpc_url() == "https://api.mainnet-beta.solana.com"
    assert get_solana_ws_url() == "wss://api.mainnet-beta.solana.com"
    clean_env.setenv("HELIUS_API_KEY", "abc")
    assert "abc" in get_solana_rpc_url()
    assert get_solana_ws_url().startswith("wss://")
    clean_env.setenv("WSS_ENDPOINT", "wss://custom")
    assert get_solana_ws_url() == "wss://custom"


def test_http_to_ws_url_and_mask():
    assert http_to_ws_url("http://localhost:8899") == "ws://localhost:8899"
    assert http_to_ws_url("wss://already") == "wss://already"
    assert mask_api_key("https://h/?api-key=secret") == "https://h/?api-key=***"
