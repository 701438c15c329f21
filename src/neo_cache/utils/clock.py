"""
Clock utilities.

Timestamps in the logical model are millisecond epoch integers; TTLs are whole
seconds at the storage boundary.
"""
import math
import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """
    Get the current time as a millisecond epoch integer.

    Returns:
        int: Milliseconds since the Unix epoch
    """
    return int(time.time() * 1000)


def seconds_until(expires_at_ms: int, now: int) -> int:
    """
    Whole seconds from now until an expiry timestamp, rounded up.

    Returns 0 when the timestamp has already passed.
    """
    remaining = expires_at_ms - now
    if remaining <= 0:
        return 0
    return math.ceil(remaining / 1000)
