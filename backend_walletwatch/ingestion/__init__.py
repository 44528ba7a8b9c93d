# Transaction retrieval: getTransaction over HTTP JSON-RPC with bounded retry.

from backend_walletwatch.ingestion.fetcher import TransactionFetcher, get_transaction_request

__all__ = [
    "TransactionFetcher",
    "get_transaction_request",
]
