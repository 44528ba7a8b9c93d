"""
structlog setup for the tracker.

Every line carries level, an ISO timestamp, the module name and an
event_type (the snake_case first argument), plus whatever key/value context
the call site passes: wallet_id, wallet_name, signature, slot.

LOG_LEVEL picks the threshold; LOG_FORMAT=json (default) renders one JSON
object per line, anything else the coloured console renderer. This module
imports nothing from backend_walletwatch so any module can import it first.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's 'event' becomes event_type; message defaults to the same name."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _renderer(fmt: str) -> Any:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """Install the processor chain; arguments override LOG_LEVEL / LOG_FORMAT."""
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    fmt = (fmt or os.getenv("LOG_FORMAT") or "json").strip().lower()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _add_timestamp,
            _normalize_event,
            _renderer(fmt),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger with logger=<name> bound.

        logger = get_logger(__name__)
        logger.info("tx_categorized", signature=sig, category="Raydium")

    renders as {"event_type": "tx_categorized", "signature": "...",
    "category": "Raydium", "level": "info", "logger": "...", "timestamp": "..."}.
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_wallet(wallet_id: str, name: str | None = None) -> structlog.BoundLogger:
    """Logger with wallet_id (and wallet_name, when given) on every line."""
    log = get_logger("backend_walletwatch").bind(wallet_id=wallet_id)
    if name:
        log = log.bind(wallet_name=name)
    return log


def short_id(value: str | None, keep: int = 16) -> str:
    """Truncate long base58 ids for log fields."""
    if not value:
        return ""
    return value[:keep] + "..." if len(value) > keep else value
