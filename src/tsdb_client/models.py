"""
Pydantic data models for the time-series write client.

Points and batches are frozen once built; the pipeline takes ownership of them
at submission and never mutates them afterwards.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

FieldValue = Union[bool, int, float, str]


class Precision(str, Enum):
    """Timestamp precision, using the server's wire abbreviations."""

    NANOSECONDS = "n"
    MICROSECONDS = "u"
    MILLISECONDS = "ms"
    SECONDS = "s"
    MINUTES = "m"
    HOURS = "h"


class ConsistencyLevel(str, Enum):
    """Server-side write acknowledgement requirement (passed through, not enforced)."""

    ALL = "all"
    ANY = "any"
    ONE = "one"
    QUORUM = "quorum"


class Destination(NamedTuple):
    """Where a group of points is written; points only batch with their own destination."""

    database: str
    retention_policy: Optional[str]
    consistency: ConsistencyLevel
    precision: Precision


def _pairs(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(value.items())
    return value


class WritePoint(BaseModel):
    """Single measurement sample: tags are kept sorted by key."""

    model_config = ConfigDict(frozen=True)

    measurement: str
    tags: Tuple[Tuple[str, str], ...] = ()
    fields: Tuple[Tuple[str, FieldValue], ...]
    time: Optional[int] = None
    precision: Precision = Precision.NANOSECONDS

    @field_validator("measurement")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("measurement must not be empty")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _sort_tags(cls, v):
        return tuple(sorted(_pairs(v) or ()))

    @field_validator("fields", mode="before")
    @classmethod
    def _field_pairs(cls, v):
        return _pairs(v)

    @field_validator("fields")
    @classmethod
    def _validate_fields(cls, v):
        if not v:
            raise ValueError("a point needs at least one field")
        keys = [k for k, _ in v]
        if len(set(keys)) != len(keys):
            raise ValueError(f"duplicate field keys: {keys}")
        return v

    def tag_map(self) -> Dict[str, str]:
        return dict(self.tags)

    def field_map(self) -> Dict[str, FieldValue]:
        return dict(self.fields)


class Batch(BaseModel):
    """Ordered group of points bound for one destination in one transport call."""

    model_config = ConfigDict(frozen=True)

    database: str
    retention_policy: Optional[str] = None
    consistency: ConsistencyLevel = ConsistencyLevel.ONE
    precision: Precision = Precision.NANOSECONDS
    points: Tuple[WritePoint, ...] = ()

    @field_validator("database")
    @classmethod
    def _database_required(cls, v: str) -> str:
        if not v:
            raise ValueError("database must not be empty")
        return v

    @property
    def destination(self) -> Destination:
        return Destination(self.database, self.retention_policy, self.consistency, self.precision)

    @classmethod
    def for_destination(cls, destination: Destination, points) -> "Batch":
        return cls(
            database=destination.database,
            retention_policy=destination.retention_policy,
            consistency=destination.consistency,
            precision=destination.precision,
            points=tuple(points),
        )
