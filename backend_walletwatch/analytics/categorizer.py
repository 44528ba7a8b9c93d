"""
Transaction categorizer: program id in logs → protocol family.

Priority matters when one transaction touches several known programs (a
Jupiter route through Raydium is a Jupiter swap): first match in
PROGRAM_CATEGORIES order wins.
"""

from __future__ import annotations

from typing import Iterable

from backend_walletwatch.solana_listener.models import Category

JUPITER_V6_PROGRAM_ID = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
RAYDIUM_AMM_V4_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
PUMP_FUN_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"

PROGRAM_CATEGORIES: tuple[tuple[str, Category], ...] = (
    (JUPITER_V6_PROGRAM_ID, Category.JUPITER),
    (RAYDIUM_AMM_V4_PROGRAM_ID, Category.RAYDIUM),
    (PUMP_FUN_PROGRAM_ID, Category.PUMP_FUN),
)


def categorize(log_messages: Iterable[str]) -> Category:
    """Return the highest-priority category whose program id appears in any log line."""
    logs = [m for m in log_messages if isinstance(m, str)]
    for program_id, category in PROGRAM_CATEGORIES:
        if any(program_id in msg for msg in logs):
            return category
    return Category.UNKNOWN
