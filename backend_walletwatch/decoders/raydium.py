"""
Raydium AMM v4 swap classifier.

Works on token balance deltas only. Per trader (owner), wrapped SOL going
out while a token comes in is a BUY; the reverse is a SELL. When the trader
swaps with native SOL the wSOL account is opened and closed inside the
transaction and shows no delta, so the pool's wSOL vault (owned by the AMM
authority) is used instead, with the sign flipped.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from backend_walletwatch.solana_listener.models import TokenBalanceDelta
from backend_walletwatch.walletwatch_logging import get_logger, short_id

logger = get_logger(__name__)

WSOL_MINT = "So11111111111111111111111111111111111111112"
RAYDIUM_AMM_AUTHORITY = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"


@dataclass(frozen=True)
class RaydiumSwap:
    owner: str
    side: str  # BUY | SELL
    mint: str
    token_amount: float
    sol_amount: float


def classify_raydium_swaps(deltas: list[TokenBalanceDelta]) -> list[RaydiumSwap]:
    """Infer one swap per trader from balance deltas; unclassifiable owners are skipped."""
    pool_sol = sum(
        d.difference for d in deltas if d.owner == RAYDIUM_AMM_AUTHORITY and d.mint == WSOL_MINT
    )
    per_owner: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for d in deltas:
        if d.owner is None or d.owner == RAYDIUM_AMM_AUTHORITY:
            continue
        per_owner[d.owner][d.mint] += d.difference

    swaps: list[RaydiumSwap] = []
    for owner, by_mint in per_owner.items():
        tokens = {m: v for m, v in by_mint.items() if m != WSOL_MINT and v != 0}
        if not tokens:
            continue
        sol = by_mint.get(WSOL_MINT) or -pool_sol
        mint, amount = max(tokens.items(), key=lambda kv: abs(kv[1]))
        if amount > 0 and sol < 0:
            side = "BUY"
        elif amount < 0 and sol > 0:
            side = "SELL"
        else:
            continue
        swaps.append(
            RaydiumSwap(owner=owner, side=side, mint=mint, token_amount=abs(amount), sol_amount=abs(sol))
        )
    return swaps


def classify_and_log_transaction(signature: str, balance_differences: list[TokenBalanceDelta]) -> None:
    """Raydium classifier contract: log one line per detected swap."""
    swaps = classify_raydium_swaps(balance_differences)
    if not swaps:
        logger.info(
            "raydium_unclassified",
            signature=short_id(signature),
            deltas=[d.to_dict() for d in balance_differences],
        )
        return
    for swap in swaps:
        logger.info(
            "raydium_swap",
            signature=short_id(signature),
            owner=swap.owner,
            side=swap.side,
            mint=swap.mint,
            token_amount=swap.token_amount,
            sol_amount=swap.sol_amount,
        )
