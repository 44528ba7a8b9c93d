"""
Pump.fun trade decoder.

Pump.fun emits its TradeEvent through an Anchor self-CPI: the inner
instruction data is the 8-byte event-CPI tag, the 8-byte TradeEvent
discriminator, then the Borsh-encoded event. Only the fields needed for a
one-line summary are unpacked; newer program versions append fields after
them, which are ignored.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime, timezone

import base58

from backend_walletwatch.core.exceptions import DecodeError

ANCHOR_EVENT_CPI_TAG = bytes.fromhex("e445a52e51cb9a1d")
TRADE_EVENT_DISCRIMINATOR = bytes.fromhex("bddb7fd34ee661ee")

# mint, sol_amount, token_amount, is_buy, user, timestamp, virtual_sol_reserves, virtual_token_reserves
_TRADE_EVENT = struct.Struct("<32sQQ?32sqQQ")

LAMPORTS_PER_SOL = 1_000_000_000
PUMP_FUN_TOKEN_DECIMALS = 6


@dataclass(frozen=True)
class PumpfunTrade:
    mint: str
    sol_amount: int  # lamports
    token_amount: int  # raw units, 6 decimals
    is_buy: bool
    user: str
    timestamp: int
    virtual_sol_reserves: int
    virtual_token_reserves: int

    @property
    def sol(self) -> float:
        return self.sol_amount / LAMPORTS_PER_SOL

    @property
    def tokens(self) -> float:
        return self.token_amount / 10**PUMP_FUN_TOKEN_DECIMALS

    @property
    def price_sol(self) -> float | None:
        """Virtual-reserve spot price in SOL per token after the trade."""
        if not self.virtual_token_reserves:
            return None
        return (self.virtual_sol_reserves / LAMPORTS_PER_SOL) / (
            self.virtual_token_reserves / 10**PUMP_FUN_TOKEN_DECIMALS
        )


def decode_trade_event(data: str | bytes) -> PumpfunTrade:
    """
    Decode a base58 instruction payload (or raw bytes) into a PumpfunTrade.

    Raises:
        DecodeError: not base58, too short, or not a TradeEvent.
    """
    if isinstance(data, str):
        try:
            raw = base58.b58decode(data)
        except ValueError as e:
            raise DecodeError(f"instruction data is not base58: {e}") from e
    else:
        raw = bytes(data)
    if raw.startswith(ANCHOR_EVENT_CPI_TAG):
        raw = raw[len(ANCHOR_EVENT_CPI_TAG):]
    if not raw.startswith(TRADE_EVENT_DISCRIMINATOR):
        raise DecodeError("not a pump.fun TradeEvent")
    body = raw[len(TRADE_EVENT_DISCRIMINATOR):]
    if len(body) < _TRADE_EVENT.size:
        raise DecodeError(f"TradeEvent too short: {len(body)} < {_TRADE_EVENT.size} bytes")
    mint, sol_amount, token_amount, is_buy, user, ts, v_sol, v_token = _TRADE_EVENT.unpack_from(body)
    return PumpfunTrade(
        mint=base58.b58encode(mint).decode("ascii"),
        sol_amount=sol_amount,
        token_amount=token_amount,
        is_buy=is_buy,
        user=base58.b58encode(user).decode("ascii"),
        timestamp=ts,
        virtual_sol_reserves=v_sol,
        virtual_token_reserves=v_token,
    )


def format_trade(trade: PumpfunTrade) -> str:
    side = "BUY" if trade.is_buy else "SELL"
    when = datetime.fromtimestamp(trade.timestamp, tz=timezone.utc).isoformat()
    line = (
        f"Pump.fun {side} {trade.tokens:,.6f} tokens of {trade.mint} "
        f"for {trade.sol:.9f} SOL by {trade.user} at {when}"
    )
    price = trade.price_sol
    if price is not None:
        line += f" (price {price:.10f} SOL)"
    return line


def decode_and_format_transaction(data: str) -> str:
    """Pump.fun decoder contract: instruction data → formatted trade line."""
    return format_trade(decode_trade_event(data))
