"""
Batching configuration.

``BatchConfig`` is the immutable value handed to ``WriteClient.enable_batching``.
``BatchSettings`` loads the same knobs from the environment (``TSDB_BATCH_*``)
or a ``.env`` file for applications that configure the client externally.
"""

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, Sequence

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ClassifiedOutcome
from .models import ConsistencyLevel, WritePoint

FailureHook = Callable[[Sequence[WritePoint], ClassifiedOutcome], None]

DEFAULT_ACTION_THRESHOLD = 1000
DEFAULT_FLUSH_INTERVAL_MS = 1000
DEFAULT_JITTER_WINDOW_MS = 0
# Counted in batches, not points.
DEFAULT_RETRY_BUFFER_CAPACITY = 100


def _noop_hook(points: Sequence[WritePoint], outcome: ClassifiedOutcome) -> None:
    pass


@dataclass(frozen=True)
class BatchConfig:
    """Thresholds, timing and failure handling for batched writes."""

    action_threshold: int = DEFAULT_ACTION_THRESHOLD  # flush once N points are buffered
    flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
    jitter_window_ms: int = DEFAULT_JITTER_WINDOW_MS  # random 0..N ms added to each period
    retry_buffer_capacity: int = DEFAULT_RETRY_BUFFER_CAPACITY
    consistency: ConsistencyLevel = ConsistencyLevel.ONE
    executor: Optional[Executor] = None  # None: an owned single-worker pool
    failure_hook: FailureHook = _noop_hook

    def __post_init__(self):
        if self.action_threshold < 1:
            raise ValueError("action_threshold must be >= 1")
        if self.flush_interval_ms < 1:
            raise ValueError("flush_interval_ms must be >= 1")
        if self.jitter_window_ms < 0:
            raise ValueError("jitter_window_ms must be >= 0")
        if self.retry_buffer_capacity < 0:
            raise ValueError("retry_buffer_capacity must be >= 0")
        if not callable(self.failure_hook):
            raise ValueError("failure_hook must be callable")


class BatchSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TSDB_BATCH_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    action_threshold: int = DEFAULT_ACTION_THRESHOLD
    flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
    jitter_window_ms: int = DEFAULT_JITTER_WINDOW_MS
    retry_buffer_capacity: int = DEFAULT_RETRY_BUFFER_CAPACITY
    consistency: ConsistencyLevel = ConsistencyLevel.ONE

    def to_config(
        self,
        *,
        failure_hook: Optional[FailureHook] = None,
        executor: Optional[Executor] = None,
    ) -> BatchConfig:
        return BatchConfig(
            action_threshold=self.action_threshold,
            flush_interval_ms=self.flush_interval_ms,
            jitter_window_ms=self.jitter_window_ms,
            retry_buffer_capacity=self.retry_buffer_capacity,
            consistency=self.consistency,
            executor=executor,
            failure_hook=failure_hook or _noop_hook,
        )


@lru_cache()
def get_settings() -> BatchSettings:
    return BatchSettings()
