"""
Solana WebSocket frame and getTransaction parsing.

Purely structural: turns raw subscription frames into LogNotification /
FinalizedSignal values and getTransaction results into TransactionRecord.
Parsing is defensive; anything malformed yields None and never raises.
"""

from __future__ import annotations

import json
from typing import Any

from backend_walletwatch.solana_listener.models import (
    FinalizedSignal,
    LogNotification,
    TokenBalance,
    TransactionRecord,
    WalletTarget,
)

SLIPPAGE_EXCEEDED_MARKER = "Slippage tolerance exceeded"


def decode_frame(raw: str | bytes) -> dict[str, Any] | None:
    """Decode one WebSocket text frame into a JSON object; None if malformed."""
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        return None
    return msg if isinstance(msg, dict) else None


def subscription_ack(msg: dict[str, Any]) -> tuple[int, int] | None:
    """Return (request_id, subscription_id) for a subscribe response, else None."""
    if "error" in msg or msg.get("method"):
        return None
    req_id = msg.get("id")
    sub_id = msg.get("result")
    # bool is an int subclass; unsubscribe acks return true
    if not isinstance(req_id, int) or not isinstance(sub_id, int) or isinstance(sub_id, bool):
        return None
    return req_id, sub_id


def extract_log_signature(
    msg: dict[str, Any],
    wallet: WalletTarget,
) -> LogNotification | None:
    """
    Extract the transaction signature from a logsNotification frame.

    Frame shape: {"method": "logsNotification", "params": {"result":
    {"context": {"slot": n}, "value": {"signature": "...", "err": ..., "logs": [...]}}}}
    """
    params = msg.get("params")
    if not isinstance(params, dict):
        return None
    result = params.get("result")
    if not isinstance(result, dict):
        return None
    value = result.get("value")
    if not isinstance(value, dict):
        return None
    signature = value.get("signature")
    if not isinstance(signature, str) or not signature:
        return None
    context = result.get("context") or {}
    slot = context.get("slot") if isinstance(context, dict) else None
    return LogNotification(
        signature=signature,
        wallet=wallet,
        slot=slot if isinstance(slot, int) else None,
        err=value.get("err"),
    )


def parse_signature_notification(
    msg: dict[str, Any],
) -> tuple[int | None, FinalizedSignal | None]:
    """
    Parse a signatureNotification frame.

    Returns (subscription_id, signal). The signature itself is not part of the
    frame; callers correlate by subscription id and fill it in.
    """
    params = msg.get("params")
    if not isinstance(params, dict):
        return None, None
    sub_id = params.get("subscription")
    result = params.get("result")
    if not result:
        return sub_id if isinstance(sub_id, int) else None, None
    value = result.get("value") if isinstance(result, dict) else None
    context = result.get("context") if isinstance(result, dict) else None
    slot = context.get("slot") if isinstance(context, dict) else None
    err = value.get("err") if isinstance(value, dict) else None
    return (
        sub_id if isinstance(sub_id, int) else None,
        FinalizedSignal(signature="", slot=slot if isinstance(slot, int) else None, err=err),
    )


def _account_keys(tx_obj: dict[str, Any], meta: dict[str, Any]) -> list[str]:
    """accountKeys (json or jsonParsed) plus meta.loadedAddresses for versioned txs."""
    message = tx_obj.get("message")
    keys = message.get("accountKeys") if isinstance(message, dict) else None
    out: list[str] = []
    for k in keys if isinstance(keys, list) else []:
        if isinstance(k, str):
            out.append(k)
        elif isinstance(k, dict) and isinstance(k.get("pubkey"), str):
            out.append(k["pubkey"])
    loaded = meta.get("loadedAddresses")
    if isinstance(loaded, dict):
        for role in ("writable", "readonly"):
            addrs = loaded.get(role)
            if isinstance(addrs, list):
                out.extend(a for a in addrs if isinstance(a, str))
    return out


def _token_balances(items: Any) -> tuple[TokenBalance, ...]:
    if not isinstance(items, list):
        return ()
    balances: list[TokenBalance] = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("mint"), str):
            continue
        balances.append(TokenBalance.from_rpc_item(item))
    return tuple(balances)


def _inner_instructions(items: Any) -> tuple[dict[str, Any], ...]:
    """Flatten meta.innerInstructions[*].instructions, keeping the outer index."""
    if not isinstance(items, list):
        return ()
    flat: list[dict[str, Any]] = []
    for block in items:
        if not isinstance(block, dict) or not isinstance(block.get("instructions"), list):
            continue
        for ix in block["instructions"]:
            if isinstance(ix, dict):
                flat.append({**ix, "outerIndex": block.get("index")})
    return tuple(flat)


def build_transaction_record(signature: str, result: dict[str, Any]) -> TransactionRecord:
    """
    Build a TransactionRecord from a getTransaction result (encoding=json).

    Missing meta/transaction sections produce empty fields rather than errors.
    """
    meta = result.get("meta")
    if not isinstance(meta, dict):
        meta = {}
    tx_obj = result.get("transaction")
    if not isinstance(tx_obj, dict):
        tx_obj = {}
    sigs = tx_obj.get("signatures")
    if isinstance(sigs, list) and sigs and isinstance(sigs[0], str):
        signature = sigs[0]
    logs = meta.get("logMessages")
    if not isinstance(logs, list):
        logs = []
    slot = result.get("slot")
    block_time = result.get("blockTime")
    return TransactionRecord(
        signature=signature,
        raw_payload=result,
        log_messages=tuple(m for m in logs if isinstance(m, str)),
        inner_instructions=_inner_instructions(meta.get("innerInstructions")),
        pre_token_balances=_token_balances(meta.get("preTokenBalances")),
        post_token_balances=_token_balances(meta.get("postTokenBalances")),
        account_keys=tuple(_account_keys(tx_obj, meta)),
        slot=int(slot) if isinstance(slot, int) else None,
        block_time=int(block_time) if isinstance(block_time, int) else None,
        err=meta.get("err"),
    )


def is_slippage_exceeded(log_messages: tuple[str, ...] | list[str]) -> bool:
    """True when the program logs report a slippage-tolerance failure."""
    return any(SLIPPAGE_EXCEEDED_MARKER in msg for msg in log_messages)
