"""
Jupiter swap decoder.

Jupiter routes hop across several AMMs, so the route itself is not
decoded. The decoder fetches the transaction by signature and describes the
fee payer's net effect: what left the wallet and what arrived. Native SOL
changes (fee excluded) count as mint "SOL".
"""

from __future__ import annotations

from typing import Any

from backend_walletwatch.analytics.dispatcher import calculate_balance_deltas
from backend_walletwatch.ingestion.fetcher import TransactionFetcher
from backend_walletwatch.solana_listener.models import TransactionRecord
from backend_walletwatch.walletwatch_logging import get_logger, short_id

logger = get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
_MIN_SOL_CHANGE = 1e-6


def _native_sol_change(record: TransactionRecord) -> float:
    meta: dict[str, Any] = record.raw_payload.get("meta") or {}
    pre = meta.get("preBalances") or []
    post = meta.get("postBalances") or []
    if not pre or not post:
        return 0.0
    fee = meta.get("fee") or 0
    return (post[0] - pre[0] + fee) / LAMPORTS_PER_SOL


def summarize_swap(record: TransactionRecord) -> str | None:
    """'Jupiter swap: <wallet> swapped X <mint> for Y <mint>' or None if not a swap."""
    payer = record.fee_payer
    if payer is None:
        return None
    changes: dict[str, float] = {}
    for d in calculate_balance_deltas(record.pre_token_balances, record.post_token_balances):
        if d.owner == payer:
            changes[d.mint] = changes.get(d.mint, 0.0) + d.difference
    sol = _native_sol_change(record)
    if abs(sol) >= _MIN_SOL_CHANGE:
        changes["SOL"] = changes.get("SOL", 0.0) + sol
    spent = [(m, -v) for m, v in changes.items() if v < 0]
    received = [(m, v) for m, v in changes.items() if v > 0]
    if not spent or not received:
        return None
    spent_str = ", ".join(f"{amount:,.6f} {mint}" for mint, amount in spent)
    received_str = ", ".join(f"{amount:,.6f} {mint}" for mint, amount in received)
    return f"Jupiter swap: {payer} swapped {spent_str} for {received_str}"


class JupiterDecoder:
    """Jupiter decoder contract: signature → formatted line or None."""

    def __init__(self, fetcher: TransactionFetcher, *, retries: int | None = None) -> None:
        self._fetcher = fetcher
        self._retries = retries

    async def __call__(self, signature: str) -> str | None:
        record = await self._fetcher.fetch(signature, retries=self._retries)
        if record is None:
            logger.warning("jupiter_lookup_failed", signature=short_id(signature))
            return None
        return summarize_swap(record)
