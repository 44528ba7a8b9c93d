"""In-memory, append-only log of processed transactions (bounded)."""

from __future__ import annotations

from collections import deque
from typing import Iterator

from backend_walletwatch.solana_listener.models import TransactionRecord

DEFAULT_MAXLEN = 1000


class TransactionLog:
    """Keeps the most recent maxlen records; older ones fall off the front."""

    def __init__(self, maxlen: int = DEFAULT_MAXLEN) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._records: deque[TransactionRecord] = deque(maxlen=maxlen)
        self.total_appended = 0

    def append(self, record: TransactionRecord) -> None:
        self._records.append(record)
        self.total_appended += 1

    def recent(self, n: int = 10) -> list[TransactionRecord]:
        """Newest last."""
        if n <= 0:
            return []
        return list(self._records)[-n:]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TransactionRecord]:
        return iter(list(self._records))
