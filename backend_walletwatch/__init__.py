"""
Backend WalletWatch — Solana wallet transaction tracker.

Watches a configured set of wallets over the Solana WebSocket API, waits for
each mentioned transaction to finalize, fetches it over JSON-RPC, classifies
it by program (Jupiter, Raydium, Pump.fun) and hands it to the matching
decoder. Modular layout: listener, ingestion, analytics, decoders, agent worker.
"""

__version__ = "0.1.0"
