"""
Application-level exceptions.

Only ConfigError may stop the process (at startup). Everything else is raised
close to the network or decoding boundary and caught, logged and dropped by
the component that owns the retry/recovery policy.
"""

from __future__ import annotations

from typing import Any


class WalletWatchError(Exception):
    """Base class for all tracker errors."""


class ConfigError(WalletWatchError):
    """Missing or invalid configuration (endpoints, wallet list, tunables)."""


class RpcError(WalletWatchError):
    """JSON-RPC response carried an ``error`` object."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(f"Solana RPC error: {message} (code={code})")
        self.code = code
        self.data = data

    @classmethod
    def from_response(cls, err: Any) -> "RpcError":
        if isinstance(err, dict):
            return cls(str(err.get("message", err)), err.get("code"), err.get("data"))
        return cls(str(err))


class DecodeError(WalletWatchError):
    """A decoder could not interpret an instruction payload or transaction."""
