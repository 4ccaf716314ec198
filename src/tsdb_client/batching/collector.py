from __future__ import annotations

import threading
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple

from ..models import Destination, WritePoint
from ..utils import monotonic


class Entry(NamedTuple):
    destination: Destination
    point: WritePoint


Chunk = Tuple[Entry, ...]


class PointCollector:
    """Thread-safe in-flight buffer with threshold hand-off.

    Producers append under a short lock. When the buffer reaches
    ``action_threshold`` it is sealed into a ready chunk and ``on_ready`` is
    called (outside the lock) so the scheduler can dispatch it right away.
    ``on_ready`` also fires when the first point lands in an empty buffer,
    which re-arms the timer for that point.
    """

    def __init__(
        self,
        action_threshold: int,
        on_ready: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = monotonic,
    ):
        if action_threshold < 1:
            raise ValueError("action_threshold must be >= 1")
        self._threshold = action_threshold
        self._on_ready = on_ready
        self._clock = clock

        self._lock = threading.Lock()
        self._buffer: List[Entry] = []
        self._ready: List[Chunk] = []
        self._oldest: Optional[float] = None
        self._closed = False

    @property
    def action_threshold(self) -> int:
        return self._threshold

    def submit(self, destination: Destination, points: Iterable[WritePoint]) -> bool:
        """Buffer ``points`` for ``destination``.

        Returns False (buffering nothing) once the collector has been closed.
        """
        signal = False
        with self._lock:
            if self._closed:
                return False
            for point in points:
                if not self._buffer:
                    self._oldest = self._clock()
                    signal = True
                self._buffer.append(Entry(destination, point))
                if len(self._buffer) >= self._threshold:
                    self._ready.append(tuple(self._buffer))
                    self._buffer = []
                    self._oldest = None
                    signal = True
        if signal and self._on_ready:
            self._on_ready()
        return True

    def drain(self) -> List[Chunk]:
        """Take every sealed chunk plus the live buffer, in submission order."""
        with self._lock:
            chunks = self._ready
            if self._buffer:
                chunks.append(tuple(self._buffer))
            self._ready = []
            self._buffer = []
            self._oldest = None
        return chunks

    def has_ready(self) -> bool:
        with self._lock:
            return bool(self._ready)

    def oldest_age(self) -> Optional[float]:
        """Seconds since the oldest unsealed point arrived, or None if empty."""
        with self._lock:
            if self._oldest is None:
                return None
            return self._clock() - self._oldest

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer) + sum(len(c) for c in self._ready)
