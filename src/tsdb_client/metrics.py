"""
Prometheus metrics for the write path.
Import this module at app startup to make them visible in the global REGISTRY.
"""

from prometheus_client import Counter, Gauge, Histogram

POINTS_SUBMITTED_TOTAL = Counter(
    "tsdb_points_submitted_total",
    "Points handed to the client",
    ["mode"],  # batched | direct
)

DISPATCH_TOTAL = Counter(
    "tsdb_dispatch_total",
    "Dispatch cycles by outcome",
    ["outcome"],  # success | retry | permanent | overrun | deferred
)

DISPATCH_LATENCY_MS = Histogram(
    "tsdb_dispatch_latency_ms",
    "Transport call latency in milliseconds",
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

RETRY_BUFFER_ENTRIES = Gauge(
    "tsdb_retry_buffer_entries",
    "Batches currently held for retry",
)

FAILED_POINTS_TOTAL = Counter(
    "tsdb_failed_points_total",
    "Points delivered to the failure hook",
    ["kind"],
)


class MetricsRegistry:
    """Centralized access to the client's metrics."""

    points_submitted_total = POINTS_SUBMITTED_TOTAL
    dispatch_total = DISPATCH_TOTAL
    dispatch_latency_ms = DISPATCH_LATENCY_MS
    retry_buffer_entries = RETRY_BUFFER_ENTRIES
    failed_points_total = FAILED_POINTS_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
