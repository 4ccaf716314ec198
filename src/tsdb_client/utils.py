"""
Utility functions for the write client.

Time helpers and the jittered flush period.
"""

import random
import time
from typing import Optional


def monotonic() -> float:
    return time.monotonic()


def jittered_period(
    flush_interval_ms: int, jitter_window_ms: int, rng: Optional[random.Random] = None
) -> float:
    """
    Flush period in seconds: ``flush_interval_ms`` plus a uniform random delay
    in ``[0, jitter_window_ms]``.

    Drawn fresh for every cycle so that many clients sharing one interval do
    not flush in lock-step.
    """
    delay_ms = float(flush_interval_ms)
    if jitter_window_ms > 0:
        delay_ms += (rng or random).uniform(0, jitter_window_ms)
    return delay_ms / 1000.0
