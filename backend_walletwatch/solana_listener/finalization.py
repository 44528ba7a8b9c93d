"""
Finalization watcher — waits for each discovered signature to reach
"finalized" commitment.

All watches share one supervised WebSocket connection. Outstanding watches
are tracked in indexed maps (request id → signature, subscription id →
signature) and removed as each resolves, so each watch delivers exactly one
FinalizedSignal. Watches still pending when the connection drops are
re-subscribed on the next connection.

per_signature=True keeps the older mode: one dedicated connection per
signature, closed after its single notification, no retry.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from typing import Any, Awaitable, Callable, Coroutine

from websockets.exceptions import ConnectionClosed

from backend_walletwatch.solana_listener.listener import (
    SupervisedConnection,
    call_maybe_async,
)
from backend_walletwatch.solana_listener.models import FinalizedSignal, LogNotification
from backend_walletwatch.solana_listener.parser import (
    decode_frame,
    parse_signature_notification,
    subscription_ack,
)
from backend_walletwatch.walletwatch_logging import get_logger, short_id

logger = get_logger(__name__)

OnFinalized = Callable[[LogNotification, FinalizedSignal], Awaitable[None] | None]


def signature_subscribe_request(request_id: int, signature: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "signatureSubscribe",
        "params": [
            signature,
            {"commitment": "finalized", "enableReceivedNotification": False},
        ],
    }


class FinalizationWatcher(SupervisedConnection):
    """Multiplexed signatureSubscribe watcher; see module docstring."""

    name = "finality_ws"

    def __init__(
        self,
        ws_url: str,
        on_finalized: OnFinalized,
        *,
        per_signature: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(ws_url, **kwargs)
        self._on_finalized = on_finalized
        self._per_signature = per_signature
        self._pending: dict[str, LogNotification] = {}
        self._request_to_signature: dict[int, str] = {}
        self._subscription_to_signature: dict[int, str] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._dedicated: set[asyncio.Task[None]] = set()
        self.finalized_count = 0

    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, signature: str) -> bool:
        return signature in self._pending

    async def watch(self, notification: LogNotification) -> None:
        """Start watching a signature for finality."""
        if self._per_signature:
            task = self._spawn(self._watch_dedicated(notification))
            self._dedicated.add(task)
            task.add_done_callback(self._dedicated.discard)
            return
        sig = notification.signature
        if sig in self._pending:
            logger.debug("finality_watch_already_pending", signature=short_id(sig))
            return
        self._pending[sig] = notification
        ws = self._ws
        if ws is not None:
            await self._send_subscribe(ws, sig)
        else:
            logger.info("finality_watch_queued", signature=short_id(sig))

    async def _send_subscribe(self, ws: Any, signature: str) -> None:
        req_id = self._next_id()
        self._request_to_signature[req_id] = signature
        try:
            await ws.send(json.dumps(signature_subscribe_request(req_id, signature)))
        except ConnectionClosed:
            # Still pending; re-subscribed on the next connection.
            self._request_to_signature.pop(req_id, None)
            logger.warning("finality_subscribe_send_failed", signature=short_id(signature))
            return
        logger.info(
            "finality_subscribed",
            signature=short_id(signature),
            commitment="finalized",
        )

    async def _on_open(self, ws: Any, connection_id: int) -> None:
        if self._pending:
            logger.info("finality_resubscribing", pending=len(self._pending))
        for sig in list(self._pending):
            await self._send_subscribe(ws, sig)

    def _on_disconnect(self) -> None:
        self._request_to_signature.clear()
        self._subscription_to_signature.clear()

    async def _on_message(self, raw: Any, connection_id: int) -> None:
        self.handle_message(raw)

    def handle_message(self, raw: Any) -> FinalizedSignal | None:
        """Route one frame; returns the signal when a watch resolved."""
        msg = decode_frame(raw)
        if msg is None:
            logger.warning("finality_message_malformed", preview=str(raw)[:100])
            return None

        ack = subscription_ack(msg)
        if ack is not None:
            req_id, sub_id = ack
            sig = self._request_to_signature.pop(req_id, None)
            if sig is not None and sig in self._pending:
                self._subscription_to_signature[sub_id] = sig
            return None

        if "error" in msg:
            req_id = msg.get("id")
            sig = self._request_to_signature.pop(req_id, None) if isinstance(req_id, int) else None
            if sig is not None:
                self._pending.pop(sig, None)
            logger.warning(
                "finality_subscribe_rejected",
                signature=short_id(sig),
                error=str(msg.get("error")),
            )
            return None

        if msg.get("method") != "signatureNotification":
            return None

        sub_id, signal = parse_signature_notification(msg)
        sig = self._subscription_to_signature.pop(sub_id, None) if sub_id is not None else None
        if sig is None:
            logger.debug("finality_unknown_subscription", subscription_id=sub_id)
            return None
        if signal is None:
            # Not the finality notice; keep waiting on this subscription.
            self._subscription_to_signature[sub_id] = sig
            return None
        notification = self._pending.pop(sig, None)
        if notification is None:
            return None
        signal = replace(signal, signature=sig)
        self._resolve(notification, signal)
        return signal

    def _resolve(self, notification: LogNotification, signal: FinalizedSignal) -> None:
        self.finalized_count += 1
        logger.info(
            "tx_finalized",
            signature=short_id(signal.signature),
            wallet_id=notification.wallet.address,
            wallet_name=notification.wallet.name,
            slot=signal.slot,
        )
        self._spawn(self._deliver(notification, signal))

    async def _deliver(self, notification: LogNotification, signal: FinalizedSignal) -> None:
        try:
            await call_maybe_async(self._on_finalized, notification, signal)
        except Exception as e:
            logger.exception(
                "finality_callback_failed",
                signature=short_id(signal.signature),
                error=str(e),
            )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight deliveries (and dedicated watches) to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _watch_dedicated(self, notification: LogNotification) -> None:
        """One connection for one signature; done after its notification."""
        sig = notification.signature
        try:
            async with self._connect(
                self._ws_url,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
            ) as ws:
                await ws.send(json.dumps(signature_subscribe_request(1, sig)))
                logger.info("finality_subscribed", signature=short_id(sig), commitment="finalized")
                async for raw in ws:
                    msg = decode_frame(raw)
                    if msg is None:
                        logger.warning("finality_message_malformed", signature=short_id(sig))
                        continue
                    if msg.get("method") != "signatureNotification":
                        continue
                    _, signal = parse_signature_notification(msg)
                    if signal is None:
                        continue
                    self._resolve(notification, replace(signal, signature=sig))
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("finality_ws_error", signature=short_id(sig), error=str(e))
        logger.debug("finality_ws_done", signature=short_id(sig))

    def stop(self) -> None:
        """Stop the shared connection and abandon dedicated watches still waiting."""
        super().stop()
        for task in list(self._dedicated):
            task.cancel()

    def stats(self) -> dict[str, Any]:
        out = super().stats()
        out["pending"] = len(self._pending)
        out["finalized"] = self.finalized_count
        return out
