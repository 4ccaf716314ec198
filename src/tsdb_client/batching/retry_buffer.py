from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List

from ..metrics import metrics_registry
from ..models import Batch
from ..utils import monotonic


@dataclass(frozen=True)
class RetryEntry:
    """A batch that failed with a retryable error, waiting for the next cycle."""

    batch: Batch
    attempts: int = 1
    first_buffered_at: float = field(default_factory=monotonic)


class RetryBuffer:
    """Bounded FIFO of retry entries; oldest entries are retried first.

    Full means full: ``try_enqueue`` rejects instead of evicting.
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self._capacity = capacity
        self._entries: Deque[RetryEntry] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def try_enqueue(self, entry: RetryEntry) -> bool:
        with self._lock:
            if len(self._entries) >= self._capacity:
                return False
            self._entries.append(entry)
            size = len(self._entries)
        metrics_registry.retry_buffer_entries.set(size)
        return True

    def drain_due(self) -> List[RetryEntry]:
        """Remove and return all entries for the next dispatch cycle."""
        with self._lock:
            entries = list(self._entries)
            self._entries.clear()
        metrics_registry.retry_buffer_entries.set(0)
        return entries

    def is_full(self) -> bool:
        with self._lock:
            return len(self._entries) >= self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
