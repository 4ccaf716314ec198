"""
Unit tests for server error classification.
"""

import pytest

from tsdb_client import ClassifiedOutcome, ErrorKind, WriteError, classify
from tsdb_client.errors import overrun


@pytest.mark.parametrize(
    "message,kind,retryable",
    [
        ('{"error":"database not found: \\"mydb\\""}', ErrorKind.DATABASE_NOT_FOUND, False),
        ("partial write: points beyond retention policy dropped=1", ErrorKind.POINTS_BEYOND_RETENTION_POLICY, False),
        ("partial write: field type conflict: input field \"v\"", ErrorKind.FIELD_TYPE_CONFLICT, False),
        ("unable to parse 'cpu value=': missing field value", ErrorKind.UNABLE_TO_PARSE, False),
        ("write failed: hinted handoff queue not empty", ErrorKind.HINTED_HANDOFF_QUEUE_NOT_EMPTY, False),
        ("engine: cache-max-memory-size exceeded: (1073741824/1073741824)", ErrorKind.CACHE_MAX_MEMORY_EXCEEDED, True),
        ("authorization failed", ErrorKind.AUTHORIZATION_FAILED, False),
        ("user is not authorized to write to database telemetry", ErrorKind.AUTHORIZATION_FAILED, False),
        ("user is required to write to database telemetry", ErrorKind.AUTHORIZATION_FAILED, False),
        ("username required", ErrorKind.AUTHORIZATION_FAILED, False),
    ],
)
def test_known_fragments(message, kind, retryable):
    outcome = classify(message)
    assert outcome.kind == kind
    assert outcome.retryable is retryable
    assert outcome.message == message
    assert not outcome.ok


def test_unknown_message_is_generic_and_retryable():
    outcome = classify("502 Bad Gateway")
    assert outcome.kind == ErrorKind.GENERIC
    assert outcome.retryable


@pytest.mark.parametrize("message", [None, ""])
def test_classification_is_total(message):
    outcome = classify(message)
    assert outcome.kind == ErrorKind.GENERIC
    assert outcome.message == ""


def test_first_matching_fragment_wins():
    """Database-not-found is checked before the retryable memory error."""
    outcome = classify("database not found; cache-max-memory-size exceeded")
    assert outcome.kind == ErrorKind.DATABASE_NOT_FOUND
    assert not outcome.retryable

    # parse errors outrank the authorization group
    outcome = classify("unable to parse authorization failed header")
    assert outcome.kind == ErrorKind.UNABLE_TO_PARSE


def test_success_outcome():
    assert ClassifiedOutcome.SUCCESS.ok
    assert ClassifiedOutcome.SUCCESS.kind is None
    assert ClassifiedOutcome.SUCCESS.as_dict()["ok"] is True


def test_overrun_is_permanent():
    outcome = overrun(5)
    assert outcome.kind == ErrorKind.RETRY_BUFFER_OVERRUN
    assert not outcome.retryable
    assert "5" in outcome.message


def test_write_error_carries_outcome():
    err = WriteError(classify("field type conflict"))
    assert err.outcome.kind == ErrorKind.FIELD_TYPE_CONFLICT
    assert not err.retryable
    assert "field type conflict" in str(err)
