from __future__ import annotations

import random
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional

from loguru import logger

from ..utils import jittered_period


class FlushScheduler:
    """Background flush loop on a single execution context.

    Each cycle draws a fresh period of ``flush_interval + U(0, jitter_window)``.
    ``due_in(period)`` tells the loop how long until something must be flushed
    (0 when a threshold hand-off is waiting); ``wake()`` makes it re-check
    early. ``stop()`` ends the loop, runs one final flush on the calling
    thread and shuts down the executor if the scheduler created it.
    """

    def __init__(
        self,
        flush: Callable[[bool], object],
        due_in: Callable[[float], float],
        *,
        flush_interval_ms: int,
        jitter_window_ms: int = 0,
        executor: Optional[Executor] = None,
        rng: Optional[random.Random] = None,
    ):
        self._flush = flush
        self._due_in = due_in
        self._interval_ms = flush_interval_ms
        self._jitter_ms = jitter_window_ms
        self._executor = executor
        self._owns_executor = executor is None
        self._rng = rng

        self._wake = threading.Event()
        self._stopping = threading.Event()
        self._future: Optional[Future] = None
        self._stop_lock = threading.Lock()
        self._stopped = False
        self._worker_ident: Optional[int] = None

    def next_period(self) -> float:
        return jittered_period(self._interval_ms, self._jitter_ms, self._rng)

    def start(self) -> None:
        if self._future is not None:
            raise RuntimeError("FlushScheduler already started")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tsdb-flush")
        self._future = self._executor.submit(self._run)
        logger.debug(
            f"Flush scheduler started (interval={self._interval_ms}ms, jitter={self._jitter_ms}ms)"
        )

    def wake(self) -> None:
        self._wake.set()

    @property
    def running(self) -> bool:
        return self._future is not None and not self._future.done()

    def stop(self) -> None:
        """Stop the loop, flush everything left, release the executor. Idempotent.

        May be called from the loop thread itself (a failure hook closing the
        client); the loop then exits once the current flush returns.
        """
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        on_worker = threading.get_ident() == self._worker_ident
        self._stopping.set()
        self._wake.set()
        try:
            if self._future is not None and not on_worker:
                try:
                    self._future.result()
                except Exception as exc:
                    logger.exception(f"Flush loop died: {type(exc).__name__}: {exc}")
            self._flush(True)
        finally:
            if self._owns_executor and self._executor is not None:
                self._executor.shutdown(wait=not on_worker)
        logger.debug("Flush scheduler stopped")

    # --------------------------- internals

    def _run(self) -> None:
        self._worker_ident = threading.get_ident()
        try:
            self._loop()
        finally:
            self._worker_ident = None

    def _loop(self) -> None:
        period = self.next_period()
        while not self._stopping.is_set():
            timeout = self._due_in(period)
            if timeout > 0:
                self._wake.wait(timeout)
            self._wake.clear()
            if self._stopping.is_set():
                break
            if self._due_in(period) > 0:
                continue
            try:
                self._flush(False)
            except Exception as exc:
                logger.exception(f"Scheduled flush failed: {type(exc).__name__}: {exc}")
            period = self.next_period()
