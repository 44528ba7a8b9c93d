"""
Solana wallet listener — supervised WebSocket connections and log subscriptions.

Responsibilities:
- Keep one persistent WebSocket connection per watched wallet.
- On open, issue logsSubscribe (mentions=[address], commitment=confirmed).
- Extract transaction signatures from logsNotification frames and hand them
  downstream; malformed frames are logged and dropped, never fatal.
- Reconnect forever on close or transport error, with a delay that starts at
  reconnect_delay_sec and grows by reconnect_backoff up to a ceiling.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import time
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from backend_walletwatch.solana_listener.models import (
    LogNotification,
    Subscription,
    WalletTarget,
)
from backend_walletwatch.solana_listener.parser import (
    decode_frame,
    extract_log_signature,
    subscription_ack,
)
from backend_walletwatch.walletwatch_logging import bind_wallet, get_logger, short_id

logger = get_logger(__name__)

DEFAULT_WS_PING_INTERVAL = 30.0
DEFAULT_WS_PING_TIMEOUT = 10.0
DEFAULT_RECONNECT_DELAY_SEC = 2.0
DEFAULT_RECONNECT_MAX_DELAY_SEC = 60.0
DEFAULT_RECONNECT_BACKOFF = 2.0
_WS_CLOSE_TIMEOUT = 5.0

OnSignature = Callable[[LogNotification], Awaitable[None] | None]
ConnectFactory = Callable[..., Any]


def logs_subscribe_request(request_id: int, address: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "logsSubscribe",
        "params": [{"mentions": [address]}, {"commitment": "confirmed"}],
    }


async def call_maybe_async(cb: Callable[..., Any], *args: Any) -> Any:
    """Call cb with args; await the result when cb is async."""
    result = cb(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class SupervisedConnection:
    """
    Reconnect loop around a single WebSocket connection.

    Subclasses implement _on_open (send subscriptions), _on_message (handle a
    frame) and optionally _on_disconnect (drop per-connection state). The old
    connection is always closed before the next one is opened.
    """

    name = "ws"

    def __init__(
        self,
        ws_url: str,
        *,
        connect: ConnectFactory | None = None,
        reconnect_delay_sec: float = DEFAULT_RECONNECT_DELAY_SEC,
        reconnect_max_delay_sec: float = DEFAULT_RECONNECT_MAX_DELAY_SEC,
        reconnect_backoff: float = DEFAULT_RECONNECT_BACKOFF,
        ping_interval: float | None = DEFAULT_WS_PING_INTERVAL,
        ping_timeout: float | None = DEFAULT_WS_PING_TIMEOUT,
    ) -> None:
        if not ws_url.strip():
            raise ValueError("ws_url must be non-empty")
        if reconnect_backoff < 1.0:
            raise ValueError("reconnect_backoff must be >= 1.0")
        self._ws_url = ws_url
        self._connect = connect or websockets.connect
        self._reconnect_delay = reconnect_delay_sec
        self._reconnect_max_delay = max(reconnect_max_delay_sec, reconnect_delay_sec)
        self._reconnect_backoff = reconnect_backoff
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._stop = asyncio.Event()
        self._ws: Any = None
        self._next_rpc_id = 0
        self._close_tasks: set[asyncio.Task[None]] = set()

        self.connect_count = 0
        self.messages_received = 0
        self.last_message_ts = 0.0

    def _next_id(self) -> int:
        self._next_rpc_id += 1
        return self._next_rpc_id

    def _log_context(self) -> dict[str, Any]:
        return {}

    async def _on_open(self, ws: Any, connection_id: int) -> None:
        raise NotImplementedError

    async def _on_message(self, raw: Any, connection_id: int) -> None:
        raise NotImplementedError

    def _on_disconnect(self) -> None:
        pass

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self) -> None:
        """Connect, subscribe and process frames; reconnect until stop() is called."""
        delay = self._reconnect_delay
        ctx = self._log_context()
        while not self._stop.is_set():
            self.connect_count += 1
            connection_id = self.connect_count
            try:
                logger.info(f"{self.name}_connecting", attempt=connection_id, **ctx)
                async with self._connect(
                    self._ws_url,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                    close_timeout=_WS_CLOSE_TIMEOUT,
                ) as ws:
                    self._ws = ws
                    logger.info(f"{self.name}_connected", attempt=connection_id, **ctx)
                    await self._on_open(ws, connection_id)
                    delay = self._reconnect_delay
                    async for raw in ws:
                        self.messages_received += 1
                        self.last_message_ts = time.time()
                        await self._on_message(raw, connection_id)
                        if self._stop.is_set():
                            break
                    logger.warning(f"{self.name}_closed", attempt=connection_id, **ctx)
            except asyncio.CancelledError:
                break
            except ConnectionClosed as e:
                logger.warning(
                    f"{self.name}_closed",
                    attempt=connection_id,
                    code=e.rcvd.code if e.rcvd else None,
                    reason=e.rcvd.reason if e.rcvd else None,
                    **ctx,
                )
            except Exception as e:
                logger.error(f"{self.name}_error", attempt=connection_id, error=str(e), **ctx)
            finally:
                self._ws = None
                self._on_disconnect()

            if self._stop.is_set():
                break
            logger.info(f"{self.name}_reconnect", delay_sec=round(delay, 2), **ctx)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            delay = min(delay * self._reconnect_backoff, self._reconnect_max_delay)
        logger.info(f"{self.name}_stopped", **ctx)

    def stop(self) -> None:
        """Stop reconnecting and close the live connection, if any."""
        self._stop.set()
        ws = self._ws
        if ws is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: the connection dies with the process.
            return
        task = loop.create_task(self._close(ws))
        self._close_tasks.add(task)
        task.add_done_callback(self._close_tasks.discard)

    async def _close(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.warning(f"{self.name}_close_failed", error=str(e), **self._log_context())

    def stats(self) -> dict[str, Any]:
        return {
            "connect_count": self.connect_count,
            "messages_received": self.messages_received,
            "last_message_ts": self.last_message_ts,
            "connected": self.connected,
        }


class LogSubscriber:
    """
    logsSubscribe handling for one wallet: builds the subscribe request and
    turns inbound frames into LogNotification values.

    Notifications are not deduplicated here; every frame carrying a signature
    is forwarded.
    """

    def __init__(self, target: WalletTarget, on_signature: OnSignature) -> None:
        self.target = target
        self._on_signature = on_signature
        self._log = bind_wallet(target.address, target.name)
        self._pending_request_id: int | None = None
        self.subscription: Subscription | None = None
        self.signatures_seen = 0

    def subscribe_request(self, request_id: int) -> dict[str, Any]:
        self._pending_request_id = request_id
        return logs_subscribe_request(request_id, self.target.address)

    def reset(self) -> None:
        """Forget the subscription; it died with its connection."""
        self._pending_request_id = None
        self.subscription = None

    async def handle_message(self, raw: Any, connection_id: int = 0) -> LogNotification | None:
        msg = decode_frame(raw)
        if msg is None:
            self._log.warning("wallet_message_malformed", preview=str(raw)[:100])
            return None

        ack = subscription_ack(msg)
        if ack is not None:
            req_id, sub_id = ack
            if req_id == self._pending_request_id:
                self.subscription = Subscription(
                    wallet_address=self.target.address,
                    subscription_id=sub_id,
                    connection_id=connection_id,
                )
                self._log.info("wallet_logs_subscription_confirmed", subscription_id=sub_id)
            return None

        if "error" in msg:
            self._log.warning("wallet_rpc_error", error=str(msg.get("error")))
            return None

        if msg.get("method") != "logsNotification":
            return None

        notification = extract_log_signature(msg, self.target)
        if notification is None:
            self._log.debug("wallet_notification_without_signature")
            return None

        self.signatures_seen += 1
        self._log.info(
            "wallet_signature_received",
            signature=short_id(notification.signature),
            slot=notification.slot,
        )
        try:
            await call_maybe_async(self._on_signature, notification)
        except Exception as e:
            self._log.exception(
                "wallet_signature_callback_failed",
                signature=short_id(notification.signature),
                error=str(e),
            )
        return notification


class ConnectionSupervisor(SupervisedConnection):
    """
    Owns the persistent streaming connection for one WalletTarget.

    Runs until stop(); connection loss is never fatal. Each new connection
    sends a fresh logsSubscribe for the wallet address.
    """

    name = "wallet_ws"

    def __init__(
        self,
        target: WalletTarget,
        ws_url: str,
        on_signature: OnSignature,
        **kwargs: Any,
    ) -> None:
        super().__init__(ws_url, **kwargs)
        self.target = target
        self.subscriber = LogSubscriber(target, on_signature)

    def _log_context(self) -> dict[str, Any]:
        return {"wallet_id": self.target.address, "wallet_name": self.target.name}

    async def _on_open(self, ws: Any, connection_id: int) -> None:
        req = self.subscriber.subscribe_request(self._next_id())
        await ws.send(json.dumps(req))
        logger.info(
            "wallet_logs_subscribed",
            wallet_id=self.target.address,
            wallet_name=self.target.name,
            commitment="confirmed",
        )

    async def _on_message(self, raw: Any, connection_id: int) -> None:
        await self.subscriber.handle_message(raw, connection_id)

    def _on_disconnect(self) -> None:
        self.subscriber.reset()

    def stats(self) -> dict[str, Any]:
        out = super().stats()
        out["wallet"] = self.target.address
        out["signatures_seen"] = self.subscriber.signatures_seen
        return out
