"""
Unit tests for Dispatcher outcome routing.
"""

from tsdb_client import Batch, ErrorKind
from tsdb_client.batching import Dispatcher, RetryBuffer, RetryEntry
from tsdb_client.errors import classify


def _batch(pts, db="db"):
    return Batch(database=db, points=tuple(pts))


def test_success_drops_batch(transport, failures, points):
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures)

    outcome = d.dispatch(_batch(points(3)))
    assert outcome.ok
    assert len(transport.batches) == 1
    assert len(rb) == 0
    assert failures.calls == []


def test_permanent_failure_goes_to_hook_once(transport, failures, points):
    transport.script("database not found")
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures)
    pts = points(4)

    outcome = d.dispatch(_batch(pts))
    assert outcome.kind == ErrorKind.DATABASE_NOT_FOUND
    assert len(failures.calls) == 1
    assert failures.calls[0][0] == pts
    assert len(rb) == 0


def test_retryable_failure_is_buffered(transport, failures, points):
    transport.script("cache-max-memory-size exceeded")
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures, clock=lambda: 42.0)

    outcome = d.dispatch(_batch(points(2)))
    assert outcome.retryable
    assert failures.calls == []
    [entry] = rb.drain_due()
    assert entry.attempts == 1
    assert entry.first_buffered_at == 42.0


def test_attempts_increment_from_merged_entries(transport, failures, points):
    transport.script("503 service unavailable")
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures, clock=lambda: 99.0)
    merged = [
        RetryEntry(_batch(points(1)), attempts=3, first_buffered_at=10.0),
        RetryEntry(_batch(points(1, start=1)), attempts=1, first_buffered_at=20.0),
    ]

    d.dispatch(_batch(points(2)), merged)
    [entry] = rb.drain_due()
    assert entry.attempts == 4
    assert entry.first_buffered_at == 10.0


def test_overrun_routes_to_hook_and_keeps_existing_entries(transport, failures, points):
    transport.script("cache-max-memory-size exceeded")
    rb = RetryBuffer(capacity=2)
    existing = [RetryEntry(_batch(points(1), db="a")), RetryEntry(_batch(points(1), db="b"))]
    for e in existing:
        rb.try_enqueue(e)
    d = Dispatcher(transport, rb, failures)
    pts = points(3, start=10)

    d.dispatch(_batch(pts, db="c"))
    assert failures.kinds == [ErrorKind.RETRY_BUFFER_OVERRUN]
    assert failures.calls[0][0] == pts
    assert not failures.calls[0][1].retryable
    assert rb.drain_due() == existing


def test_final_dispatch_reports_retryable_failures(transport, failures, points):
    transport.script("timeout")
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures)

    outcome = d.dispatch(_batch(points(2)), final=True)
    assert outcome.kind == ErrorKind.GENERIC
    assert failures.kinds == [ErrorKind.GENERIC]
    assert len(rb) == 0


def test_transport_exception_is_classified(transport, failures, points):
    transport.script(ConnectionError("connection refused"))
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures)

    outcome = d.dispatch(_batch(points(1)))
    assert outcome.kind == ErrorKind.GENERIC
    assert "connection refused" in outcome.message
    assert len(rb) == 1


def test_defer_buffers_without_sending(transport, failures, points):
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures)

    d.defer(_batch(points(2)), classify("timeout"))
    assert transport.batches == []
    [entry] = rb.drain_due()
    assert entry.attempts == 0


def test_hook_exception_does_not_propagate(transport, points):
    transport.script("field type conflict")

    def bad_hook(pts, outcome):
        raise RuntimeError("hook blew up")

    d = Dispatcher(transport, RetryBuffer(capacity=1), bad_hook)
    outcome = d.dispatch(_batch(points(1)))
    assert outcome.kind == ErrorKind.FIELD_TYPE_CONFLICT


def test_defer_keeps_attempts_of_merged_entries(transport, failures, points):
    rb = RetryBuffer(capacity=5)
    d = Dispatcher(transport, rb, failures, clock=lambda: 99.0)
    merged = [RetryEntry(_batch(points(2)), attempts=3, first_buffered_at=10.0)]

    d.defer(_batch(points(2)), classify("timeout"), merged)
    assert transport.batches == []
    [entry] = rb.drain_due()
    assert entry.attempts == 3
    assert entry.first_buffered_at == 10.0
