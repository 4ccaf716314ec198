"""
Time-series Database Write Client

Point batching with threshold/timer flushing, server error classification and
bounded retry buffering. Line-protocol encoding and delivery are supplied by a
``Transport``.

Usage:
    from tsdb_client import WriteClient, BatchConfig, WritePoint

    client = WriteClient(transport, database="telemetry")
    client.enable_batching(BatchConfig(action_threshold=500, jitter_window_ms=200))
    client.submit(WritePoint(measurement="cpu", tags={"host": "a"}, fields={"load": 0.4}))
    client.close()
"""

from .client import WriteClient
from .config import BatchConfig, BatchSettings, get_settings
from .errors import (
    BatchingAlreadyEnabledError,
    BatchingNotEnabledError,
    BatchingStateError,
    ClassifiedOutcome,
    ErrorKind,
    TSDBClientError,
    WriteError,
    classify,
)
from .models import Batch, ConsistencyLevel, Destination, Precision, WritePoint
from .transport import Transport, TransportResult

__version__ = "1.0.0"
__all__ = [
    "WriteClient",
    "BatchConfig",
    "BatchSettings",
    "get_settings",
    "Batch",
    "WritePoint",
    "Destination",
    "Precision",
    "ConsistencyLevel",
    "Transport",
    "TransportResult",
    "ClassifiedOutcome",
    "ErrorKind",
    "classify",
    "TSDBClientError",
    "WriteError",
    "BatchingStateError",
    "BatchingNotEnabledError",
    "BatchingAlreadyEnabledError",
]
