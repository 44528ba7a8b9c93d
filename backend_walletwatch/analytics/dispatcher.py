"""
Dispatcher — routes a categorized TransactionRecord to its decoder.

- Pump.fun: every inner instruction with a data payload of at least
  min_pumpfun_data_len characters goes to the Pump.fun decoder.
- Raydium: token balance deltas, then the Raydium classifier once.
- Jupiter: the signature alone; the decoder does its own lookup.
- Unknown: nothing.

A process-wide SeenSignatures set (Unknown records included) is checked
before dispatch so the same signature is never decoded twice (repeat log notifications spawn repeat
watches upstream). Decoder failures are logged and swallowed.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Awaitable, Callable, Iterable

from backend_walletwatch.core.exceptions import DecodeError
from backend_walletwatch.solana_listener.listener import call_maybe_async
from backend_walletwatch.solana_listener.models import (
    Category,
    TokenBalance,
    TokenBalanceDelta,
    TransactionRecord,
)
from backend_walletwatch.walletwatch_logging import get_logger, short_id

logger = get_logger(__name__)

DEFAULT_MIN_PUMPFUN_DATA_LEN = 150
DEFAULT_MAX_SEEN_SIGNATURES = 10_000

PumpfunDecoder = Callable[[str], str | Awaitable[str]]
RaydiumClassifier = Callable[[str, list[TokenBalanceDelta]], Awaitable[None] | None]
JupiterDecoder = Callable[[str], Awaitable[str | None]]


class SeenSignatures:
    """Bounded set of dispatched signatures; oldest evicted first when full."""

    def __init__(self, maxlen: int = DEFAULT_MAX_SEEN_SIGNATURES) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._maxlen = maxlen
        self._set: set[str] = set()
        self._order: deque[str] = deque()

    def __contains__(self, signature: object) -> bool:
        return signature in self._set

    def __len__(self) -> int:
        return len(self._set)

    def add(self, signature: str) -> bool:
        """Mark seen; False if it already was."""
        if signature in self._set:
            return False
        if len(self._set) >= self._maxlen:
            oldest = self._order.popleft()
            self._set.discard(oldest)
        self._set.add(signature)
        self._order.append(signature)
        return True


def calculate_balance_deltas(
    pre_balances: Iterable[TokenBalance],
    post_balances: Iterable[TokenBalance],
) -> list[TokenBalanceDelta]:
    """
    Token balance change per post entry.

    Matched on (mint, owner): post - pre. No pre entry (new account): the
    full post amount. Zero deltas are omitted.
    """
    pre_list = list(pre_balances)
    deltas: list[TokenBalanceDelta] = []
    for post in post_balances:
        match = next(
            (p for p in pre_list if p.mint == post.mint and p.owner == post.owner),
            None,
        )
        diff = post.amount - match.amount if match is not None else post.amount
        if diff != 0:
            deltas.append(TokenBalanceDelta(mint=post.mint, owner=post.owner, difference=diff))
    return deltas


class Dispatcher:
    """Routes TransactionRecords to the Pump.fun / Raydium / Jupiter decoders."""

    def __init__(
        self,
        pumpfun_decoder: PumpfunDecoder,
        raydium_classifier: RaydiumClassifier,
        jupiter_decoder: JupiterDecoder,
        *,
        seen_signatures: SeenSignatures | None = None,
        min_pumpfun_data_len: int = DEFAULT_MIN_PUMPFUN_DATA_LEN,
    ) -> None:
        self._pumpfun_decoder = pumpfun_decoder
        self._raydium_classifier = raydium_classifier
        self._jupiter_decoder = jupiter_decoder
        self._seen = seen_signatures if seen_signatures is not None else SeenSignatures()
        self._min_pumpfun_data_len = min_pumpfun_data_len
        self.dispatched: dict[str, int] = {c.value: 0 for c in Category}
        self.duplicates = 0

    @property
    def seen(self) -> SeenSignatures:
        return self._seen

    async def dispatch(self, record: TransactionRecord) -> list[str]:
        """Dispatch one record; returns decoded output lines (possibly empty)."""
        category = record.category or Category.UNKNOWN
        if not self._seen.add(record.signature):
            self.duplicates += 1
            logger.info(
                "dispatch_duplicate_skipped",
                signature=short_id(record.signature),
                category=category.value,
            )
            return []
        self.dispatched[category.value] += 1
        if category is Category.UNKNOWN:
            return []
        if category is Category.PUMP_FUN:
            return await self._dispatch_pumpfun(record)
        if category is Category.RAYDIUM:
            await self._dispatch_raydium(record)
            return []
        return await self._dispatch_jupiter(record)

    async def _dispatch_pumpfun(self, record: TransactionRecord) -> list[str]:
        out: list[str] = []
        for ix in record.inner_instructions:
            data = ix.get("data")
            if not isinstance(data, str) or len(data) < self._min_pumpfun_data_len:
                continue
            try:
                decoded = await call_maybe_async(self._pumpfun_decoder, data)
            except DecodeError as e:
                logger.debug("pumpfun_instruction_skipped", signature=short_id(record.signature), reason=str(e))
                continue
            except Exception as e:
                logger.exception("pumpfun_decoder_failed", signature=short_id(record.signature), error=str(e))
                continue
            if decoded:
                logger.info("pumpfun_trade", signature=short_id(record.signature), detail=decoded)
                out.append(decoded)
        return out

    async def _dispatch_raydium(self, record: TransactionRecord) -> None:
        deltas = calculate_balance_deltas(record.pre_token_balances, record.post_token_balances)
        try:
            await call_maybe_async(self._raydium_classifier, record.signature, deltas)
        except Exception as e:
            logger.exception("raydium_classifier_failed", signature=short_id(record.signature), error=str(e))

    async def _dispatch_jupiter(self, record: TransactionRecord) -> list[str]:
        try:
            decoded = await call_maybe_async(self._jupiter_decoder, record.signature)
        except Exception as e:
            logger.exception("jupiter_decoder_failed", signature=short_id(record.signature), error=str(e))
            return []
        if not decoded:
            return []
        logger.info("jupiter_swap", signature=short_id(record.signature), detail=decoded)
        return [decoded]

    def stats(self) -> dict[str, Any]:
        return {"dispatched": dict(self.dispatched), "duplicates": self.duplicates}
