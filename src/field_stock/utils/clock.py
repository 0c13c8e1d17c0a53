"""Millisecond wall clock shared by the cache, lockout, and poller."""

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
