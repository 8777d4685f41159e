"""Clock protocol for quotaguard.

This module defines the ClockProtocol interface that every time source
handed to a tracker must implement. Uses `typing.Protocol` for structural
subtyping.

Usage:
    from quotaguard.protocols import ClockProtocol
    from quotaguard.core.time import ManualClock

    clock = ManualClock()
    assert isinstance(clock, ClockProtocol)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ClockProtocol(Protocol):
    """Protocol for millisecond time sources.

    Readings must never decrease between calls. The absolute origin is
    irrelevant; only differences between readings are used.

    Note:
        Implementations do NOT need to inherit from this class.
    """

    def now_ms(self) -> int:
        """Return the current reading in integer milliseconds."""
        ...
