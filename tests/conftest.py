"""
Pytest configuration and fixtures for tsdb-client.

Provides fake transports, a failure-hook recorder and point factories.
"""

import threading
import time
from collections import deque

import pytest

from tsdb_client import TransportResult, WritePoint


class RecordingTransport:
    """Transport double that records batches and replays scripted responses.

    Each scripted response is consumed by one send: ``None`` succeeds, a string
    is returned as the server's error message, an exception is raised.
    """

    def __init__(self, responses=None):
        self.batches = []
        self.sent_at = []
        self._responses = deque(responses or [])
        self._lock = threading.Lock()

    def script(self, *responses):
        with self._lock:
            self._responses.extend(responses)

    def send(self, database, retention_policy, consistency, precision, batch):
        with self._lock:
            self.batches.append(batch)
            self.sent_at.append(time.monotonic())
            resp = self._responses.popleft() if self._responses else None
        if resp is None:
            return TransportResult.success()
        if isinstance(resp, Exception):
            raise resp
        return TransportResult.failure(resp)

    def wait_for(self, n: int, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if len(self.batches) >= n:
                return True
            time.sleep(0.005)
        return len(self.batches) >= n

    def sent_points(self):
        return [p for b in self.batches for p in b.points]


class FailureRecorder:
    """Failure hook that keeps every (points, outcome) call."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, points, outcome):
        with self._lock:
            self.calls.append((list(points), outcome))

    @property
    def kinds(self):
        return [outcome.kind for _, outcome in self.calls]


def make_point(i: int, measurement: str = "cpu", host: str = "a") -> WritePoint:
    return WritePoint(
        measurement=measurement,
        tags={"host": host},
        fields={"value": float(i), "seq": i},
        time=1_700_000_000_000_000_000 + i,
    )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def failures():
    return FailureRecorder()


@pytest.fixture
def points():
    """Factory: points(n) -> n distinct points in order."""

    def _make(n: int, start: int = 0, **kw):
        return [make_point(i, **kw) for i in range(start, start + n)]

    return _make
