from __future__ import annotations

import random
import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..config import BatchConfig
from ..errors import ClassifiedOutcome
from ..models import Batch, Destination, WritePoint
from ..transport import Transport
from ..utils import monotonic
from .collector import Chunk, PointCollector
from .dispatcher import Dispatcher
from .retry_buffer import RetryBuffer, RetryEntry
from .scheduler import FlushScheduler

Cycle = Tuple[Batch, List[RetryEntry]]

# How long a scheduled flush waits for a flush running on another thread.
_LOCK_POLL_S = 0.05


class BatchPipeline:
    """Collector, retry buffer, dispatcher and scheduler wired together.

    Usage:
        pipeline = BatchPipeline(transport, BatchConfig(action_threshold=500))
        pipeline.start()
        pipeline.submit(destination, [point, ...])
        pipeline.stop()  # final flush

    Only one flush runs at a time; the scheduler thread and ``flush()`` callers
    serialize on ``_flush_lock``. Buffers are swapped out under their own locks
    before any transport call, so producers never wait on network I/O.

    The lock is re-entrant: a failure hook may call ``flush()`` or ``stop()``
    from inside a flush on the same thread.
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[BatchConfig] = None,
        *,
        rng: Optional[random.Random] = None,
    ):
        self._cfg = config or BatchConfig()
        self._retry_buffer = RetryBuffer(self._cfg.retry_buffer_capacity)
        self._dispatcher = Dispatcher(transport, self._retry_buffer, self._cfg.failure_hook)
        self._scheduler = FlushScheduler(
            self._scheduled_flush,
            self.seconds_until_due,
            flush_interval_ms=self._cfg.flush_interval_ms,
            jitter_window_ms=self._cfg.jitter_window_ms,
            executor=self._cfg.executor,
            rng=rng,
        )
        self._collector = PointCollector(self._cfg.action_threshold, on_ready=self._scheduler.wake)

        self._flush_lock = threading.RLock()
        self._flush_owner: Optional[int] = None
        self._finalized = False
        self._drained = threading.Event()
        self._last_cycle_at = monotonic()
        self._cycles = 0

    @property
    def config(self) -> BatchConfig:
        return self._cfg

    @property
    def retry_buffer(self) -> RetryBuffer:
        return self._retry_buffer

    @property
    def cycles(self) -> int:
        """Dispatch cycles run so far (transport calls made)."""
        return self._cycles

    @property
    def pending_points(self) -> int:
        return len(self._collector)

    # --------------------------- lifecycle

    def start(self) -> None:
        self._scheduler.start()

    def stop(self) -> None:
        """Refuse new points, stop the loop and flush what is left (blocking)."""
        self._collector.close()
        self._scheduler.stop()

    def wait_drained(self, timeout: Optional[float] = None) -> bool:
        """Block until the final flush has finished.

        Returns immediately when called from inside a flush (a failure hook),
        since that flush cannot finish while its hook is waiting.
        """
        if self._flush_owner == threading.get_ident():
            return self._drained.is_set()
        return self._drained.wait(timeout)

    # --------------------------- producer side

    def submit(self, destination: Destination, points: Iterable[WritePoint]) -> bool:
        """Buffer points; False when the pipeline is already shutting down."""
        return self._collector.submit(destination, points)

    # --------------------------- flushing

    def seconds_until_due(self, period: float) -> float:
        if self._collector.has_ready():
            return 0.0
        waits = []
        age = self._collector.oldest_age()
        if age is not None:
            waits.append(period - age)
        if len(self._retry_buffer):
            waits.append(period - (monotonic() - self._last_cycle_at))
        if not waits:
            return period
        return max(0.0, min(waits))

    def flush(self, final: bool = False) -> int:
        """Dispatch everything buffered plus all retry entries. Returns cycles run."""
        with self._flush_lock:
            return self._flush_locked(final)

    def _scheduled_flush(self, final: bool) -> int:
        if final:
            return self.flush(True)
        # A flush held elsewhere drains the same buffers; return to the loop
        # so it can notice a stop request instead of queueing behind it.
        if not self._flush_lock.acquire(timeout=_LOCK_POLL_S):
            return 0
        try:
            return self._flush_locked(False)
        finally:
            self._flush_lock.release()

    def _flush_locked(self, final: bool) -> int:
        owner, self._flush_owner = self._flush_owner, threading.get_ident()
        try:
            chunks = self._collector.drain()
            retries = self._retry_buffer.drain_due()
            cycles = plan_cycles(chunks, retries, self._cfg.action_threshold)

            failed: Dict[Destination, ClassifiedOutcome] = {}
            for batch, merged in cycles:
                # a nested final flush may have run from a failure hook
                last = final or self._finalized
                dest = batch.destination
                if not last and dest in failed:
                    self._dispatcher.defer(batch, failed[dest], merged)
                    continue
                outcome = self._dispatcher.dispatch(batch, merged, final=last)
                self._cycles += 1
                if outcome.retryable:
                    failed[dest] = outcome

            self._last_cycle_at = monotonic()
        finally:
            self._flush_owner = owner
            if final:
                self._finalized = True
                self._drained.set()
        if cycles:
            logger.debug(
                f"Flush finished: {len(cycles)} batch(es), "
                f"{len(self._retry_buffer)} awaiting retry{' (final)' if final else ''}"
            )
        return len(cycles)


def plan_cycles(
    chunks: Sequence[Chunk], retries: Sequence[RetryEntry], max_points: int
) -> List[Cycle]:
    """Group drained content into one batch per (chunk, destination).

    Retry entries ride ahead of the first new-point batch for their
    destination; destinations with only retry content come first. Entries are
    only merged while the combined batch stays within ``max_points``, so a
    batch that keeps failing never grows past the action threshold.
    """
    pending: "OrderedDict[Destination, List[List[RetryEntry]]]" = OrderedDict()
    for entry in retries:
        packs = pending.setdefault(entry.batch.destination, [])
        if packs and _size(packs[-1]) + len(entry.batch.points) <= max_points:
            packs[-1].append(entry)
        else:
            packs.append([entry])

    chunk_groups: List["OrderedDict[Destination, List[WritePoint]]"] = []
    new_dests = set()
    for chunk in chunks:
        groups: "OrderedDict[Destination, List[WritePoint]]" = OrderedDict()
        for dest, point in chunk:
            groups.setdefault(dest, []).append(point)
        new_dests.update(groups)
        chunk_groups.append(groups)

    cycles: List[Cycle] = []
    for dest in [d for d in pending if d not in new_dests]:
        for merged in pending.pop(dest):
            cycles.append((Batch.for_destination(dest, _points_of(merged)), merged))

    for groups in chunk_groups:
        for dest, points in groups.items():
            packs = pending.pop(dest, [])
            for merged in packs[:-1]:
                cycles.append((Batch.for_destination(dest, _points_of(merged)), merged))
            if packs and _size(packs[-1]) + len(points) <= max_points:
                merged = packs[-1]
                cycles.append((Batch.for_destination(dest, _points_of(merged) + points), merged))
                continue
            if packs:
                cycles.append((Batch.for_destination(dest, _points_of(packs[-1])), packs[-1]))
            cycles.append((Batch.for_destination(dest, points), []))
    return cycles


def _size(entries: Sequence[RetryEntry]) -> int:
    return sum(len(e.batch.points) for e in entries)


def _points_of(entries: Sequence[RetryEntry]) -> List[WritePoint]:
    return [p for e in entries for p in e.batch.points]
