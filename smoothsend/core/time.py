"""
smoothsend/core/time.py

Time sources.

Settlement compares deadlines against whole seconds since the Unix epoch.
Audit records carry an ISO-8601 stamp: YYYY-MM-DDTHH:MM:SS.mmmZ
(milliseconds, explicit Z, no +00:00, no microseconds).

Every component takes its clock by injection. Nothing calls time.time()
directly except SystemClock.
"""

import threading
import time
from datetime import datetime, timezone


def iso_timestamp(seconds: float = None) -> str:
    """
    Return a UTC timestamp in audit wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    if seconds is None:
        now = datetime.now(timezone.utc)
    else:
        now = datetime.fromtimestamp(seconds, timezone.utc)
    ms = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


class SystemClock:
    """Wall-clock seconds since the epoch. Read-only."""

    def now(self) -> int:
        return int(time.time())

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock:
    """
    A clock that only moves when told to.

    Used by simulations and tests that need deterministic deadlines.
    Never moves backwards.
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._lock = threading.Lock()
        self._now  = int(start)

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def set(self, seconds: int) -> int:
        with self._lock:
            if seconds < self._now:
                raise ValueError("ManualClock cannot move backwards")
            self._now = int(seconds)
            return self._now

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now})"
