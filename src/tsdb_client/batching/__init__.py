"""Asynchronous batch-write pipeline

Producer -> collector -> (threshold | jittered timer) -> dispatcher -> transport:
- PointCollector: lock-protected in-flight buffer with threshold hand-off
- FlushScheduler: background loop on a single-worker execution context
- Dispatcher: one transport call per cycle, error classification, routing
- RetryBuffer: bounded FIFO of retryable batches, merged into later cycles
- BatchPipeline: wiring, single-flight flush, final drain on stop
"""

from .collector import Entry, PointCollector
from .retry_buffer import RetryBuffer, RetryEntry
from .dispatcher import Dispatcher
from .scheduler import FlushScheduler
from .pipeline import BatchPipeline, plan_cycles

__all__ = [
    # buffers
    "Entry",
    "PointCollector",
    "RetryBuffer",
    "RetryEntry",
    # runtime
    "Dispatcher",
    "FlushScheduler",
    "BatchPipeline",
    "plan_cycles",
]
