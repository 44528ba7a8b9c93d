"""
Pytest fixtures for WalletWatch tests.

Network is faked: FakeWebSocket stands in for a websockets connection (the
connect factory is injectable everywhere), and rpc_client() builds an
httpx.AsyncClient on an httpx.MockTransport.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from backend_walletwatch.config import settings as settings_module
from backend_walletwatch.solana_listener.models import (
    LogNotification,
    TokenBalance,
    WalletTarget,
)

VALID_WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
VALID_WALLET_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
VALID_SIG = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"

JUPITER = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
RAYDIUM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
PUMP_FUN = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"


class FakeWebSocket:
    """
    Minimal stand-in for a websockets client connection.

    send() records the decoded JSON and, when a responder is set, queues its
    reply frames. Iteration yields queued frames and ends (remote close) once
    the queue is empty; raise_on_close is raised at that point instead.
    """

    def __init__(
        self,
        frames: list[Any] | None = None,
        *,
        responder: Callable[[dict[str, Any]], list[Any]] | None = None,
        raise_on_close: BaseException | None = None,
    ) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.entered = False
        self._responder = responder
        self._raise_on_close = raise_on_close
        self._frames: list[str] = [self._encode(f) for f in (frames or [])]

    @staticmethod
    def _encode(frame: Any) -> str:
        return frame if isinstance(frame, str) else json.dumps(frame)

    async def __aenter__(self) -> "FakeWebSocket":
        self.entered = True
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        self.closed = True
        return False

    async def send(self, data: str) -> None:
        msg = json.loads(data)
        self.sent.append(msg)
        if self._responder is not None:
            self._frames.extend(self._encode(f) for f in self._responder(msg))

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while self._frames and not self.closed:
            await asyncio.sleep(0)
            yield self._frames.pop(0)
        if self._raise_on_close is not None:
            raise self._raise_on_close


def solana_responder(signature: str = VALID_SIG, slot: int = 100) -> Callable[[dict[str, Any]], list[Any]]:
    """Acks subscribe requests and emits one notification per subscription."""

    def respond(msg: dict[str, Any]) -> list[Any]:
        req_id = msg["id"]
        sub_id = 1000 + req_id
        ack = {"jsonrpc": "2.0", "result": sub_id, "id": req_id}
        if msg["method"] == "logsSubscribe":
            return [ack, logs_notification(signature, sub_id, slot)]
        if msg["method"] == "signatureSubscribe":
            return [ack, signature_notification(sub_id, slot + 32)]
        return [ack]

    return respond


def logs_notification(signature: str, subscription: int = 1, slot: int = 100) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": "logsNotification",
        "params": {
            "result": {
                "context": {"slot": slot},
                "value": {"signature": signature, "err": None, "logs": ["Program log: hi"]},
            },
            "subscription": subscription,
        },
    }


def signature_notification(subscription: int, slot: int = 132) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": "signatureNotification",
        "params": {
            "result": {"context": {"slot": slot}, "value": {"err": None}},
            "subscription": subscription,
        },
    }


def rpc_client(responses: list[Any]) -> tuple[httpx.AsyncClient, list[dict[str, Any]]]:
    """
    AsyncClient whose POSTs are answered from responses in order (the last
    one repeats). Items are JSON bodies, httpx.Response objects or exceptions
    to raise. Returns (client, list of decoded request bodies).
    """
    calls: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        item = responses[min(len(calls) - 1, len(responses) - 1)]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), calls


def tx_result(
    signature: str = VALID_SIG,
    *,
    logs: list[str] | None = None,
    pre_token: list[dict[str, Any]] | None = None,
    post_token: list[dict[str, Any]] | None = None,
    inner: list[dict[str, Any]] | None = None,
    account_keys: list[str] | None = None,
    pre_balances: list[int] | None = None,
    post_balances: list[int] | None = None,
    fee: int = 5000,
) -> dict[str, Any]:
    """getTransaction result (encoding=json) with the fields the pipeline reads."""
    return {
        "slot": 250_000_000,
        "blockTime": 1_700_000_000,
        "meta": {
            "err": None,
            "fee": fee,
            "logMessages": logs or [],
            "innerInstructions": inner or [],
            "preTokenBalances": pre_token or [],
            "postTokenBalances": post_token or [],
            "preBalances": pre_balances or [],
            "postBalances": post_balances or [],
        },
        "transaction": {
            "signatures": [signature],
            "message": {"accountKeys": account_keys or [VALID_WALLET], "instructions": []},
        },
    }


def token_balance(mint: str, owner: str, amount: str, index: int = 0) -> dict[str, Any]:
    return {
        "accountIndex": index,
        "mint": mint,
        "owner": owner,
        "uiTokenAmount": {"uiAmountString": amount, "decimals": 6},
    }


def balance(mint: str, owner: str | None, amount: str) -> TokenBalance:
    return TokenBalance(account_index=None, mint=mint, owner=owner, ui_amount_string=amount)


@pytest.fixture
def wallet() -> WalletTarget:
    return WalletTarget(name="test1", address=VALID_WALLET)


@pytest.fixture
def notification(wallet: WalletTarget) -> LogNotification:
    return LogNotification(signature=VALID_SIG, wallet=wallet, slot=100)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove tracker env vars (and skip .env loading) so get_settings() only sees what the test sets."""
    for name in (
        "RPC_URL",
        "SOLANA_RPC_URL",
        "WSS_ENDPOINT",
        "SOLANA_WS_URL",
        "HELIUS_API_KEY",
        "WALLETS",
        "WALLETS_FILE",
        "RECONNECT_DELAY_SEC",
        "RECONNECT_MAX_DELAY_SEC",
        "RECONNECT_BACKOFF",
        "FETCH_RETRIES",
        "FETCH_RETRY_DELAY_SEC",
        "RPC_TIMEOUT_SEC",
        "TX_LOG_MAXLEN",
        "SEEN_SIGNATURES_MAX",
        "FINALIZATION_PER_SIGNATURE",
        "HEARTBEAT_INTERVAL_SEC",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings_module, "load_walletwatch_env", lambda: None)
    return monkeypatch
