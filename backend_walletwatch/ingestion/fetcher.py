"""
Transaction fetcher — full transaction record by signature.

getTransaction (encoding=json, maxSupportedTransactionVersion=0) over HTTP
JSON-RPC. A null result means the node has not indexed the transaction yet;
the fetch is retried in an explicit loop, at most retries + 1 attempts with
a short pause between them. Transport and RPC errors use the same budget.
When the budget is spent the signature is logged and dropped: fetch()
returns None and never raises.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from backend_walletwatch.core.exceptions import RpcError
from backend_walletwatch.solana_listener.models import TransactionRecord
from backend_walletwatch.solana_listener.parser import build_transaction_record
from backend_walletwatch.walletwatch_logging import get_logger, short_id

logger = get_logger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY_SEC = 0.5
DEFAULT_REQUEST_TIMEOUT_SEC = 15.0


def get_transaction_request(request_id: int, signature: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "getTransaction",
        "params": [
            signature,
            {"encoding": "json", "maxSupportedTransactionVersion": 0},
        ],
    }


class TransactionFetcher:
    """
    Async getTransaction client with bounded retry.

    Pass client to share an httpx.AsyncClient (tests inject one backed by
    httpx.MockTransport); otherwise the fetcher owns one and close() releases it.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        retries: int = DEFAULT_RETRIES,
        retry_delay_sec: float = DEFAULT_RETRY_DELAY_SEC,
        request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self._rpc_url = rpc_url.strip()
        self._retries = retries
        self._retry_delay = retry_delay_sec
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout_sec)
        )
        self._request_id = 0

        self.attempts = 0
        self.fetched = 0
        self.dropped = 0

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TransactionFetcher":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        """
        One getTransaction call. Returns the result object or None when the
        node has no record yet; raises httpx.HTTPError or RpcError on failure.
        """
        body = get_transaction_request(self._next_id(), signature)
        resp = await self._client.post(self._rpc_url, json=body)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise RpcError(f"unexpected response type {type(data).__name__}")
        if data.get("error"):
            raise RpcError.from_response(data["error"])
        result = data.get("result")
        return result if isinstance(result, dict) else None

    async def fetch(self, signature: str, retries: int | None = None) -> TransactionRecord | None:
        """Fetch and parse a transaction; None after retries + 1 failed attempts."""
        budget = self._retries if retries is None else max(0, retries)
        max_attempts = budget + 1
        for attempt in range(1, max_attempts + 1):
            self.attempts += 1
            try:
                result = await self.get_transaction(signature)
            except (httpx.HTTPError, RpcError, ValueError) as e:
                logger.warning(
                    "tx_fetch_failed",
                    signature=short_id(signature),
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=str(e),
                )
                result = None
            else:
                if result is None:
                    logger.warning(
                        "tx_not_found_retrying" if attempt < max_attempts else "tx_not_found",
                        signature=short_id(signature),
                        attempt=attempt,
                        max_attempts=max_attempts,
                    )
            if result is not None:
                try:
                    record = build_transaction_record(signature, result)
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    # Malformed payloads are not retried.
                    self.dropped += 1
                    logger.error("tx_parse_failed", signature=short_id(signature), error=str(e))
                    return None
                self.fetched += 1
                logger.debug(
                    "tx_fetched",
                    signature=short_id(signature),
                    attempt=attempt,
                    slot=record.slot,
                    log_lines=len(record.log_messages),
                )
                return record
            if attempt < max_attempts and self._retry_delay > 0:
                await asyncio.sleep(self._retry_delay)

        self.dropped += 1
        logger.error(
            "tx_fetch_gave_up",
            signature=short_id(signature),
            attempts=max_attempts,
        )
        return None

    def stats(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "fetched": self.fetched,
            "dropped": self.dropped,
        }
