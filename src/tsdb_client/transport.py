"""
Transport contract.

Line-protocol encoding, HTTP/UDP delivery, compression and TLS live behind this
interface. The pipeline only needs one synchronous call that either succeeds or
hands back the server's error message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from .models import Batch, ConsistencyLevel, Precision


@dataclass(frozen=True)
class TransportResult:
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls) -> "TransportResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, message: str) -> "TransportResult":
        return cls(ok=False, error=message)


@runtime_checkable
class Transport(Protocol):
    """Anything that can deliver a batch to the server.

    Implementations enforce their own timeouts. Raising is allowed; the
    exception text is then treated like a failure message.
    """

    def send(
        self,
        database: str,
        retention_policy: Optional[str],
        consistency: ConsistencyLevel,
        precision: Precision,
        batch: Batch,
    ) -> TransportResult: ...


def send_batch(transport: Transport, batch: Batch) -> TransportResult:
    """Call ``transport`` for ``batch``, folding exceptions into a failure result."""
    try:
        result = transport.send(
            batch.database,
            batch.retention_policy,
            batch.consistency,
            batch.precision,
            batch,
        )
    except Exception as exc:
        return TransportResult.failure(str(exc) or type(exc).__name__)
    if result is None:
        return TransportResult.success()
    return result
