"""Bounded in-memory history of captured log records."""

import threading
from collections import deque
from itertools import islice

from .models import LogRecord

DEFAULT_CAPACITY = 2000


class HistoryStore:
    """Ring buffer of the most recent LogRecords.

    Appends evict the oldest record once ``capacity`` is reached. A single
    lock guards the deque, so ``recent`` always copies a consistent snapshot.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._capacity = capacity
        self._records: deque[LogRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, record: LogRecord) -> None:
        with self._lock:
            self._records.append(record)

    def recent(self, limit: int) -> list[LogRecord]:
        """Return up to ``limit`` newest records, oldest first."""
        effective = max(1, min(limit, self._capacity))
        with self._lock:
            size = len(self._records)
            if effective >= size:
                return list(self._records)
            return list(islice(self._records, size - effective, size))

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
