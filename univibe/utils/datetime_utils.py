"""
Datetime utilities.
"""

import time
from datetime import datetime, timezone

# UTC timezone constant
UTC = timezone.utc


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def epoch_millis() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return time.time_ns() // 1_000_000


class SenderClock:
    """Hands out per-sender strictly increasing epoch-millisecond timestamps."""

    def __init__(self, clock=epoch_millis):
        self._clock = clock
        self._last: dict[str, int] = {}

    def next(self, sender_id: str) -> int:
        now = self._clock()
        last = self._last.get(sender_id)
        if last is not None and now <= last:
            now = last + 1
        self._last[sender_id] = now
        return now
