"""
Agent runner — wiring and process lifecycle.

One ConnectionSupervisor per wallet feeds a shared FinalizationWatcher; each
finalized signature is fetched, filtered (slippage failures), categorized,
appended to the TransactionLog and dispatched. run_tracker() runs everything
on one asyncio loop until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any

import httpx

from backend_walletwatch.agent_worker.transaction_log import TransactionLog
from backend_walletwatch.analytics.categorizer import categorize
from backend_walletwatch.analytics.dispatcher import Dispatcher, SeenSignatures
from backend_walletwatch.config.env import mask_api_key
from backend_walletwatch.config.settings import Settings, get_settings
from backend_walletwatch.core.exceptions import ConfigError
from backend_walletwatch.decoders.jupiter import JupiterDecoder
from backend_walletwatch.decoders.pumpfun import decode_and_format_transaction
from backend_walletwatch.decoders.raydium import classify_and_log_transaction
from backend_walletwatch.ingestion.fetcher import TransactionFetcher
from backend_walletwatch.solana_listener.finalization import FinalizationWatcher
from backend_walletwatch.solana_listener.listener import ConnectFactory, ConnectionSupervisor
from backend_walletwatch.solana_listener.models import (
    FinalizedSignal,
    LogNotification,
    TransactionRecord,
)
from backend_walletwatch.solana_listener.parser import is_slippage_exceeded
from backend_walletwatch.walletwatch_logging import get_logger, short_id

logger = get_logger(__name__)


class TrackerRuntime:
    """
    Owns every pipeline component for one process.

    connect and client are injection points for tests (fake WebSocket
    factory, httpx.AsyncClient on a MockTransport).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        connect: ConnectFactory | None = None,
        client: httpx.AsyncClient | None = None,
        transaction_log: TransactionLog | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = TransactionFetcher(
            settings.rpc_url,
            retries=settings.fetch_retries,
            retry_delay_sec=settings.fetch_retry_delay_sec,
            request_timeout_sec=settings.rpc_timeout_sec,
            client=client,
        )
        self.transaction_log = transaction_log or TransactionLog(settings.tx_log_maxlen)
        self.dispatcher = dispatcher or Dispatcher(
            decode_and_format_transaction,
            classify_and_log_transaction,
            JupiterDecoder(self.fetcher),
            seen_signatures=SeenSignatures(settings.seen_signatures_max),
        )
        reconnect: dict[str, Any] = {
            "connect": connect,
            "reconnect_delay_sec": settings.reconnect_delay_sec,
            "reconnect_max_delay_sec": settings.reconnect_max_delay_sec,
            "reconnect_backoff": settings.reconnect_backoff,
        }
        self.watcher = FinalizationWatcher(
            settings.ws_url,
            self.process_finalized,
            per_signature=settings.finalization_per_signature,
            **reconnect,
        )
        self.supervisors = [
            ConnectionSupervisor(target, settings.ws_url, self.watcher.watch, **reconnect)
            for target in settings.wallets
        ]
        self.skipped_slippage = 0
        self.skipped_duplicate = 0
        self._stop = asyncio.Event()

    async def process_finalized(
        self,
        notification: LogNotification,
        finalized: FinalizedSignal,
    ) -> TransactionRecord | None:
        """Fetch → slippage filter → categorize → log → dispatch for one finalized signature."""
        signature = notification.signature
        if self._already_processed(signature, notification):
            return None
        record = await self.fetcher.fetch(signature)
        if record is None:
            return None
        # Another delivery of the same signature may have finished during the fetch.
        if self._already_processed(record.signature, notification):
            return None
        if is_slippage_exceeded(record.log_messages):
            self.skipped_slippage += 1
            logger.info(
                "tx_skipped_slippage",
                signature=short_id(signature),
                wallet_id=notification.wallet.address,
            )
            return None
        record = record.with_category(categorize(record.log_messages)).with_wallet(notification.wallet)
        self.transaction_log.append(record)
        logger.info(
            "tx_categorized",
            signature=short_id(signature),
            wallet_id=notification.wallet.address,
            wallet_name=notification.wallet.name,
            category=record.category.value if record.category else None,
            slot=record.slot,
            failed=record.err is not None,
        )
        await self.dispatcher.dispatch(record)
        return record

    def _already_processed(self, signature: str, notification: LogNotification) -> bool:
        if signature not in self.dispatcher.seen:
            return False
        self.skipped_duplicate += 1
        logger.info(
            "tx_skipped_duplicate",
            signature=short_id(signature),
            wallet_id=notification.wallet.address,
        )
        return True

    async def _heartbeat(self) -> None:
        interval = self.settings.heartbeat_interval_sec
        if interval <= 0:
            return
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                logger.info("tracker_heartbeat", **self.stats())

    async def run(self) -> None:
        """Run all wallet connections (and the shared finality connection) until stop()."""
        logger.info(
            "tracker_started",
            wallet_count=len(self.supervisors),
            ws_url=mask_api_key(self.settings.ws_url),
            rpc_url=mask_api_key(self.settings.rpc_url),
            finality_mode="per_signature" if self.settings.finalization_per_signature else "multiplexed",
        )
        coros = [s.run() for s in self.supervisors]
        if not self.settings.finalization_per_signature:
            coros.append(self.watcher.run())
        coros.append(self._heartbeat())
        try:
            await asyncio.gather(*coros)
        finally:
            await self.watcher.drain()
            await self.fetcher.close()
            logger.info("tracker_stopped", **self.stats())

    def stop(self) -> None:
        self._stop.set()
        for supervisor in self.supervisors:
            supervisor.stop()
        self.watcher.stop()

    def stats(self) -> dict[str, Any]:
        return {
            "wallets_connected": sum(1 for s in self.supervisors if s.connected),
            "signatures_seen": sum(s.subscriber.signatures_seen for s in self.supervisors),
            "finality_pending": self.watcher.pending_count(),
            "finalized": self.watcher.finalized_count,
            "fetch": self.fetcher.stats(),
            "skipped_slippage": self.skipped_slippage,
            "skipped_duplicate": self.skipped_duplicate,
            "transactions_logged": self.transaction_log.total_appended,
            "dispatch": self.dispatcher.stats(),
        }


async def _run_until_signal(runtime: TrackerRuntime) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runtime.stop)
        except (NotImplementedError, RuntimeError, ValueError):
            # Signal handlers unsupported on this platform / not main thread
            pass
    await runtime.run()


def run_tracker(settings: Settings | None = None) -> None:
    """
    Build the runtime from settings (environment when None) and block until
    shutdown. ConfigError from get_settings() propagates to the caller.
    """
    settings = settings or get_settings()
    runtime = TrackerRuntime(settings)
    try:
        asyncio.run(_run_until_signal(runtime))
    except KeyboardInterrupt:
        logger.info("tracker_keyboard_interrupt")


def main() -> None:
    """Console entry point: load settings from the environment and run."""
    try:
        settings = get_settings()
    except ConfigError as e:
        logger.error(
            "main_config_error",
            error=str(e),
            message="Set WALLETS (comma-separated name:address) or WALLETS_FILE, plus RPC_URL / WSS_ENDPOINT",
        )
        sys.exit(1)
    logger.info(
        "main_wallets_loaded",
        wallet_count=len(settings.wallets),
        wallets=[t.name for t in settings.wallets],
    )
    run_tracker(settings)
