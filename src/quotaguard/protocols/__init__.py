"""Protocol abstractions for quotaguard.

Protocols:
    ClockProtocol: Interface for millisecond time sources.
"""

from __future__ import annotations

from quotaguard.protocols.clock import ClockProtocol

__all__ = [
    "ClockProtocol",
]
