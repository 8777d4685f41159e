"""Millisecond clocks for window arithmetic.

All dedup, reset and cooldown windows are measured against "now" at call
time. Trackers take a clock object instead of reading the system time
directly so tests can move time deterministically.

Location: src/quotaguard/core/time.py
"""

from __future__ import annotations

import threading
import time as stdlib_time
from typing import Optional


class SystemClock:
    """Monotonic process clock in integer milliseconds."""

    def now_ms(self) -> int:
        """Return the current monotonic time in milliseconds."""
        return stdlib_time.monotonic_ns() // 1_000_000

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock:
    """Clock that only moves when told to.

    Used by tests and by the replay command to simulate window boundaries
    without sleeping.

    Attributes:
        start_ms: Initial reading in milliseconds.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        """Return the current simulated time in milliseconds."""
        with self._lock:
            return self._now

    def advance(self, ms: int) -> int:
        """Move the clock forward.

        Args:
            ms: Milliseconds to advance (must be >= 0).

        Returns:
            The new reading.

        Raises:
            ValueError: If ms is negative.
        """
        if ms < 0:
            raise ValueError("cannot move a clock backwards")
        with self._lock:
            self._now += int(ms)
            return self._now

    def set(self, now_ms: int) -> None:
        """Jump to an absolute reading that is not earlier than the current one."""
        with self._lock:
            if now_ms < self._now:
                raise ValueError("cannot move a clock backwards")
            self._now = int(now_ms)

    def __repr__(self) -> str:
        return f"ManualClock(now_ms={self._now})"


_default_clock: Optional[SystemClock] = None


def get_default_clock() -> SystemClock:
    """Get or create the shared SystemClock instance."""
    global _default_clock
    if _default_clock is None:
        _default_clock = SystemClock()
    return _default_clock
