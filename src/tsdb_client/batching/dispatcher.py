from __future__ import annotations

import time
from typing import Callable, Sequence

from loguru import logger

from ..config import FailureHook
from ..errors import ClassifiedOutcome, classify, overrun
from ..metrics import metrics_registry
from ..models import Batch, WritePoint
from ..transport import Transport, send_batch
from ..utils import monotonic
from .retry_buffer import RetryBuffer, RetryEntry


class Dispatcher:
    """Sends one batch per cycle and routes the classified result.

    success   -> dropped
    permanent -> failure hook, once, with every point of the batch
    retryable -> retry buffer (or failure hook with RETRY_BUFFER_OVERRUN when full)

    The failure hook is called on the dispatching thread; exceptions it raises
    are logged and swallowed so one bad hook cannot stop the flush loop.
    """

    def __init__(
        self,
        transport: Transport,
        retry_buffer: RetryBuffer,
        failure_hook: FailureHook,
        clock: Callable[[], float] = monotonic,
    ):
        self._transport = transport
        self._retry_buffer = retry_buffer
        self._hook = failure_hook
        self._clock = clock

    def dispatch(
        self, batch: Batch, merged: Sequence[RetryEntry] = (), *, final: bool = False
    ) -> ClassifiedOutcome:
        """Make exactly one transport call for ``batch``.

        ``merged`` are the retry entries whose points lead the batch; they have
        already left the retry buffer. With ``final`` set there is no later
        cycle, so retryable failures go to the failure hook as well.
        """
        t0 = time.perf_counter()
        result = send_batch(self._transport, batch)
        metrics_registry.dispatch_latency_ms.observe((time.perf_counter() - t0) * 1000.0)

        if result.ok:
            metrics_registry.dispatch_total.labels(outcome="success").inc()
            logger.debug(
                f"Dispatched {len(batch.points)} points to {batch.database}"
                f" (retried entries: {len(merged)})"
            )
            return ClassifiedOutcome.SUCCESS

        outcome = classify(result.error)
        if not outcome.retryable or final:
            metrics_registry.dispatch_total.labels(outcome="permanent").inc()
            logger.warning(
                f"Write to {batch.database} failed permanently "
                f"({outcome.kind.value}): {outcome.message}"
            )
            self._deliver(batch.points, outcome)
            return outcome

        attempts = max((e.attempts for e in merged), default=0) + 1
        first_at = min((e.first_buffered_at for e in merged), default=self._clock())
        self._buffer(RetryEntry(batch, attempts=attempts, first_buffered_at=first_at), outcome)
        return outcome

    def defer(
        self, batch: Batch, cause: ClassifiedOutcome, merged: Sequence[RetryEntry] = ()
    ) -> None:
        """Queue ``batch`` for retry without sending it.

        Used when an earlier batch for the same destination just failed, so
        that writes to one destination keep their submission order. Entries in
        ``merged`` keep their attempt count since nothing was sent.
        """
        metrics_registry.dispatch_total.labels(outcome="deferred").inc()
        attempts = max((e.attempts for e in merged), default=0)
        first_at = min((e.first_buffered_at for e in merged), default=self._clock())
        self._buffer(RetryEntry(batch, attempts=attempts, first_buffered_at=first_at), cause)

    def _buffer(self, entry: RetryEntry, cause: ClassifiedOutcome) -> None:
        if self._retry_buffer.try_enqueue(entry):
            metrics_registry.dispatch_total.labels(outcome="retry").inc()
            logger.warning(
                f"Write to {entry.batch.database} failed ({cause.kind.value}), "
                f"buffered for retry (attempt {entry.attempts}, "
                f"{len(self._retry_buffer)}/{self._retry_buffer.capacity} entries)"
            )
            return

        metrics_registry.dispatch_total.labels(outcome="overrun").inc()
        outcome = overrun(self._retry_buffer.capacity)
        logger.error(f"{outcome.message}; dropping {len(entry.batch.points)} points")
        self._deliver(entry.batch.points, outcome)

    def _deliver(self, points: Sequence[WritePoint], outcome: ClassifiedOutcome) -> None:
        metrics_registry.failed_points_total.labels(kind=outcome.kind.value).inc(len(points))
        try:
            self._hook(points, outcome)
        except Exception as exc:
            logger.exception(f"Failure hook raised {type(exc).__name__}: {exc}")
