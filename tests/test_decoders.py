"""
Decoder tests: Pump.fun TradeEvent decoding, Raydium swap classification
from balance deltas, Jupiter swap summary.
"""

from __future__ import annotations

import asyncio
import struct

import base58
import pytest

from backend_walletwatch.core.exceptions import DecodeError
from backend_walletwatch.decoders.jupiter import JupiterDecoder, summarize_swap
from backend_walletwatch.decoders.pumpfun import (
    ANCHOR_EVENT_CPI_TAG,
    TRADE_EVENT_DISCRIMINATOR,
    decode_and_format_transaction,
    decode_trade_event,
)
from backend_walletwatch.decoders.raydium import (
    RAYDIUM_AMM_AUTHORITY,
    WSOL_MINT,
    classify_and_log_transaction,
    classify_raydium_swaps,
)
from backend_walletwatch.ingestion.fetcher import TransactionFetcher
from backend_walletwatch.solana_listener.models import TokenBalanceDelta
from backend_walletwatch.solana_listener.parser import build_transaction_record

from conftest import VALID_SIG, VALID_WALLET, VALID_WALLET_2, rpc_client, token_balance, tx_result

TOKEN_MINT = VALID_WALLET_2


def _trade_event_data(*, is_buy: bool = True, with_tag: bool = True, extra: bytes = b"\x00" * 40) -> str:
    body = struct.pack(
        "<32sQQ?32sqQQ",
        base58.b58decode(TOKEN_MINT),
        1_500_000_000,
        123_456_789_000,
        is_buy,
        base58.b58decode(VALID_WALLET),
        1_700_000_000,
        30_000_000_000,
        1_000_000_000_000_000,
    )
    prefix = ANCHOR_EVENT_CPI_TAG if with_tag else b""
    return base58.b58encode(prefix + TRADE_EVENT_DISCRIMINATOR + body + extra).decode("ascii")


def test_pumpfun_decode_trade_event():
    """TradeEvent fields are unpacked from the self-CPI payload."""
    data = _trade_event_data()
    assert len(data) >= 150
    trade = decode_trade_event(data)
    assert trade.mint == TOKEN_MINT
    assert trade.user == VALID_WALLET
    assert trade.is_buy is True
    assert trade.sol == pytest.approx(1.5)
    assert trade.tokens == pytest.approx(123_456.789)
    assert trade.timestamp == 1_700_000_000
    assert trade.price_sol == pytest.approx(30.0 / 1_000_000_000.0)


def test_pumpfun_decode_without_cpi_tag():
    """A payload starting directly at the discriminator decodes too."""
    trade = decode_trade_event(_trade_event_data(with_tag=False, is_buy=False))
    assert trade.is_buy is False


def test_pumpfun_format():
    """Formatted line names side, amounts, mint and user."""
    line = decode_and_format_transaction(_trade_event_data())
    assert line.startswith("Pump.fun BUY 123,456.789000 tokens of " + TOKEN_MINT)
    assert "for 1.500000000 SOL by " + VALID_WALLET in line
    assert "2023-11-14T22:13:20+00:00" in line


@pytest.mark.parametrize(
    "data",
    [
        "0OIl",  # not base58
        base58.b58encode(b"\x01" * 200).decode("ascii"),  # wrong discriminator
        base58.b58encode(ANCHOR_EVENT_CPI_TAG + TRADE_EVENT_DISCRIMINATOR + b"\x00" * 10).decode("ascii"),
    ],
    ids=["not_base58", "other_event", "truncated"],
)
def test_pumpfun_decode_errors(data):
    """Non-trade payloads raise DecodeError."""
    with pytest.raises(DecodeError):
        decode_trade_event(data)


def test_raydium_buy_with_wsol_account():
    """Trader wSOL down + token up → BUY."""
    deltas = [
        TokenBalanceDelta(mint=WSOL_MINT, owner=VALID_WALLET, difference=-2.0),
        TokenBalanceDelta(mint=TOKEN_MINT, owner=VALID_WALLET, difference=5000.0),
        TokenBalanceDelta(mint=WSOL_MINT, owner=RAYDIUM_AMM_AUTHORITY, difference=2.0),
        TokenBalanceDelta(mint=TOKEN_MINT, owner=RAYDIUM_AMM_AUTHORITY, difference=-5000.0),
    ]
    swaps = classify_raydium_swaps(deltas)
    assert len(swaps) == 1
    swap = swaps[0]
    assert (swap.owner, swap.side, swap.mint) == (VALID_WALLET, "BUY", TOKEN_MINT)
    assert swap.token_amount == 5000.0
    assert swap.sol_amount == 2.0


def test_raydium_sell_with_native_sol():
    """No trader wSOL delta: the pool vault's wSOL drop means the trader received SOL → SELL."""
    deltas = [
        TokenBalanceDelta(mint=TOKEN_MINT, owner=VALID_WALLET, difference=-800.0),
        TokenBalanceDelta(mint=WSOL_MINT, owner=RAYDIUM_AMM_AUTHORITY, difference=-0.4),
        TokenBalanceDelta(mint=TOKEN_MINT, owner=RAYDIUM_AMM_AUTHORITY, difference=800.0),
    ]
    swaps = classify_raydium_swaps(deltas)
    assert [(s.side, s.token_amount, s.sol_amount) for s in swaps] == [("SELL", 800.0, 0.4)]


def test_raydium_unclassifiable():
    """Token-only moves with no SOL leg are not swaps; the classifier still just logs."""
    deltas = [TokenBalanceDelta(mint=TOKEN_MINT, owner=VALID_WALLET, difference=10.0)]
    assert classify_raydium_swaps(deltas) == []
    assert classify_and_log_transaction(VALID_SIG, deltas) is None
    assert classify_and_log_transaction(VALID_SIG, []) is None


def test_jupiter_summarize_token_to_token():
    """Fee payer's token deltas become 'swapped X for Y'."""
    raw = tx_result(
        account_keys=[VALID_WALLET],
        pre_token=[token_balance(WSOL_MINT, VALID_WALLET, "3"), token_balance(TOKEN_MINT, VALID_WALLET, "0")],
        post_token=[token_balance(WSOL_MINT, VALID_WALLET, "1"), token_balance(TOKEN_MINT, VALID_WALLET, "250")],
    )
    line = summarize_swap(build_transaction_record(VALID_SIG, raw))
    assert line == (
        f"Jupiter swap: {VALID_WALLET} swapped 2.000000 {WSOL_MINT} for 250.000000 {TOKEN_MINT}"
    )


def test_jupiter_summarize_native_sol():
    """Native SOL spent (fee excluded) is reported as SOL."""
    raw = tx_result(
        account_keys=[VALID_WALLET],
        post_token=[token_balance(TOKEN_MINT, VALID_WALLET, "42")],
        pre_balances=[5_000_000_000],
        post_balances=[3_999_995_000],
        fee=5000,
    )
    line = summarize_swap(build_transaction_record(VALID_SIG, raw))
    assert line == f"Jupiter swap: {VALID_WALLET} swapped 1.000000 SOL for 42.000000 {TOKEN_MINT}"


def test_jupiter_summarize_not_a_swap():
    """Nothing received or nothing spent → None."""
    raw = tx_result(post_token=[token_balance(TOKEN_MINT, VALID_WALLET, "42")])
    assert summarize_swap(build_transaction_record(VALID_SIG, raw)) is None


def test_jupiter_decoder_does_its_own_lookup():
    """JupiterDecoder fetches the transaction by signature; None when it cannot be found."""
    raw = tx_result(
        pre_token=[token_balance(WSOL_MINT, VALID_WALLET, "3")],
        post_token=[token_balance(WSOL_MINT, VALID_WALLET, "1"), token_balance(TOKEN_MINT, VALID_WALLET, "9")],
    )
    client, calls = rpc_client([{"jsonrpc": "2.0", "id": 1, "result": raw}])
    missing_client, missing_calls = rpc_client([{"jsonrpc": "2.0", "id": 1, "result": None}])

    async def scenario():
        async with client, missing_client:
            found = await JupiterDecoder(TransactionFetcher("https://rpc", client=client, retry_delay_sec=0))(VALID_SIG)
            missing = await JupiterDecoder(
                TransactionFetcher("https://rpc", client=missing_client, retry_delay_sec=0), retries=1
            )(VALID_SIG)
            return found, missing

    found, missing = asyncio.run(scenario())
    assert found is not None and found.startswith("Jupiter swap: ")
    assert calls[0]["params"][0] == VALID_SIG
    assert missing is None
    assert len(missing_calls) == 2
