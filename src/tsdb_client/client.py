from __future__ import annotations

import threading
from typing import Optional, Union

from loguru import logger

from .batching import BatchPipeline
from .config import BatchConfig
from .errors import BatchingAlreadyEnabledError, BatchingNotEnabledError, WriteError, classify
from .metrics import metrics_registry
from .models import Batch, ConsistencyLevel, WritePoint
from .transport import Transport, send_batch


class WriteClient:
    """
    Write path for a time-series database.

    Without batching every ``submit`` is a synchronous transport call that
    raises ``WriteError`` on failure. With batching enabled, ``submit`` only
    buffers; terminal failures are reported through ``BatchConfig.failure_hook``.

    Usage:
        client = WriteClient(transport, database="telemetry")
        client.enable_batching(BatchConfig(action_threshold=2000, flush_interval_ms=500))
        for p in points:
            client.submit(p)
        client.close()  # final flush
    """

    def __init__(
        self,
        transport: Transport,
        database: Optional[str] = None,
        retention_policy: Optional[str] = None,
        consistency: ConsistencyLevel = ConsistencyLevel.ONE,
    ):
        self._transport = transport
        self._database = database
        self._retention_policy = retention_policy
        self._consistency = consistency

        self._state_lock = threading.Lock()
        self._pipeline: Optional[BatchPipeline] = None

        self._stats_lock = threading.Lock()
        self._writes = 0
        self._batched_points = 0
        self._direct_points = 0

    # --------------------------- context management

    def __enter__(self) -> "WriteClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --------------------------- batching lifecycle

    @property
    def is_batching_enabled(self) -> bool:
        return self._pipeline is not None

    def enable_batching(self, config: Optional[BatchConfig] = None) -> "WriteClient":
        with self._state_lock:
            if self._pipeline is not None:
                raise BatchingAlreadyEnabledError("Batch processing is already enabled")
            cfg = config or BatchConfig()
            pipeline = BatchPipeline(self._transport, cfg)
            pipeline.start()
            self._pipeline = pipeline
        logger.info(
            f"Batching enabled: threshold={cfg.action_threshold} "
            f"interval={cfg.flush_interval_ms}ms jitter={cfg.jitter_window_ms}ms "
            f"retry_capacity={cfg.retry_buffer_capacity}"
        )
        return self

    def disable_batching(self) -> None:
        """Flush everything still buffered or awaiting retry, then stop. Blocks.

        The pipeline stays attached until the final flush returns; submissions
        in that window wait for it and then write directly, so they cannot
        overtake points that were already buffered.
        """
        pipeline = self._pipeline
        if pipeline is None:
            return
        pipeline.stop()
        with self._state_lock:
            if self._pipeline is pipeline:
                self._pipeline = None
        stats = self.stats()
        logger.info(
            f"Batching disabled: writes={stats['writes']} "
            f"batched_points={stats['batched_points']} direct_points={stats['direct_points']}"
        )

    def close(self) -> None:
        self.disable_batching()

    # --------------------------- writes

    def submit(
        self,
        item: Union[WritePoint, Batch],
        database: Optional[str] = None,
        retention_policy: Optional[str] = None,
    ) -> None:
        """Write one point or a pre-built batch.

        ``database``/``retention_policy`` only apply to single points (falling
        back to the client defaults); a Batch carries its own destination.
        """
        pipeline = self._pipeline
        if isinstance(item, Batch):
            batch = item
        elif isinstance(item, WritePoint):
            db = database or self._database
            if not db:
                raise ValueError("database is required (no client default set)")
            consistency = pipeline.config.consistency if pipeline else self._consistency
            batch = Batch(
                database=db,
                retention_policy=retention_policy or self._retention_policy,
                consistency=consistency,
                precision=item.precision,
                points=(item,),
            )
        else:
            raise TypeError(f"expected WritePoint or Batch, got {type(item).__name__}")

        self._count_write()
        if not batch.points:
            return
        if pipeline is not None:
            if pipeline.submit(batch.destination, batch.points):
                self._count_points(len(batch.points), batched=True)
                return
            pipeline.wait_drained()
        self._write_direct(batch)

    def flush_now(self) -> int:
        """Run dispatch cycles for everything buffered now. Returns the number of batches."""
        pipeline = self._pipeline
        if pipeline is None:
            raise BatchingNotEnabledError("flush_now() requires batching to be enabled")
        return pipeline.flush()

    def stats(self) -> dict:
        with self._stats_lock:
            return {
                "writes": self._writes,
                "batched_points": self._batched_points,
                "direct_points": self._direct_points,
            }

    # --------------------------- internals

    def _write_direct(self, batch: Batch) -> None:
        self._count_points(len(batch.points), batched=False)
        result = send_batch(self._transport, batch)
        if not result.ok:
            raise WriteError(classify(result.error))

    def _count_write(self) -> None:
        with self._stats_lock:
            self._writes += 1

    def _count_points(self, n: int, *, batched: bool) -> None:
        with self._stats_lock:
            if batched:
                self._batched_points += n
            else:
                self._direct_points += n
        metrics_registry.points_submitted_total.labels(
            mode="batched" if batched else "direct"
        ).inc(n)