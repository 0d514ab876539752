"""Timestamp utilities.

Elapsed-time decisions (cooldowns, breaker timeouts, rate-limit windows)
use a monotonic ``Clock``: a zero-argument callable returning seconds.
Components accept one so tests can drive time by hand; wall-clock UTC
datetimes are only used for event metadata.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], float]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def monotonic() -> float:
    """Default clock for elapsed-time bookkeeping."""
    return time.monotonic()
