"""
Error taxonomy for the time-series write client.

Server failures arrive as opaque messages and are mapped once, by substring,
onto a fixed set of kinds with a retry-worthiness flag. Exceptions are only
raised for synchronous paths: direct writes and caller misuse.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ErrorKind(str, Enum):
    DATABASE_NOT_FOUND = "database_not_found"
    FIELD_TYPE_CONFLICT = "field_type_conflict"
    POINTS_BEYOND_RETENTION_POLICY = "points_beyond_retention_policy"
    UNABLE_TO_PARSE = "unable_to_parse"
    HINTED_HANDOFF_QUEUE_NOT_EMPTY = "hinted_handoff_queue_not_empty"
    CACHE_MAX_MEMORY_EXCEEDED = "cache_max_memory_exceeded"
    AUTHORIZATION_FAILED = "authorization_failed"
    RETRY_BUFFER_OVERRUN = "retry_buffer_overrun"
    GENERIC = "generic"


@dataclass(frozen=True)
class ClassifiedOutcome:
    """Result of one dispatch attempt. ``kind is None`` means success."""

    kind: Optional[ErrorKind] = None
    retryable: bool = False
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "kind": self.kind.value if self.kind else None,
            "retryable": self.retryable,
            "message": self.message,
        }


ClassifiedOutcome.SUCCESS = ClassifiedOutcome()

# First match wins, so order is significant.
_KNOWN_ERRORS: Tuple[Tuple[Tuple[str, ...], ErrorKind, bool], ...] = (
    (("database not found",), ErrorKind.DATABASE_NOT_FOUND, False),
    (("points beyond retention policy",), ErrorKind.POINTS_BEYOND_RETENTION_POLICY, False),
    (("field type conflict",), ErrorKind.FIELD_TYPE_CONFLICT, False),
    (("unable to parse",), ErrorKind.UNABLE_TO_PARSE, False),
    (("hinted handoff queue not empty",), ErrorKind.HINTED_HANDOFF_QUEUE_NOT_EMPTY, False),
    (("cache-max-memory-size exceeded",), ErrorKind.CACHE_MAX_MEMORY_EXCEEDED, True),
    (
        (
            "user is required to write to database",
            "user is not authorized to write to database",
            "authorization failed",
            "username required",
        ),
        ErrorKind.AUTHORIZATION_FAILED,
        False,
    ),
)


def classify(message: Optional[str]) -> ClassifiedOutcome:
    """Map a server error message to a failure outcome.

    Unknown messages are GENERIC and retryable; this function never raises.
    """
    text = message or ""
    for fragments, kind, retryable in _KNOWN_ERRORS:
        if any(f in text for f in fragments):
            return ClassifiedOutcome(kind=kind, retryable=retryable, message=text)
    return ClassifiedOutcome(kind=ErrorKind.GENERIC, retryable=True, message=text)


def overrun(capacity: int) -> ClassifiedOutcome:
    """Local, permanent failure: the retry buffer had no room for a batch."""
    return ClassifiedOutcome(
        kind=ErrorKind.RETRY_BUFFER_OVERRUN,
        retryable=False,
        message=f"Retry buffer overrun, current capacity: {capacity}",
    )


class TSDBClientError(Exception):
    """Base error for the write client."""

    pass


class WriteError(TSDBClientError):
    """A direct (non-batched) write was rejected; carries the classified outcome."""

    def __init__(self, outcome: ClassifiedOutcome):
        super().__init__(outcome.message)
        self.outcome = outcome

    @property
    def retryable(self) -> bool:
        return self.outcome.retryable


class BatchingStateError(TSDBClientError):
    """Operation not valid in the client's current batching state."""

    pass


class BatchingNotEnabledError(BatchingStateError):
    pass


class BatchingAlreadyEnabledError(BatchingStateError):
    pass
