"""Per-session counter for empty-response retries."""

import threading
from collections import OrderedDict
from typing import Optional

import structlog

from quotaguard.limits.policy import BackoffPolicy

log = structlog.get_logger()


class EmptyResponseCounter:
    """Counts retries caused by empty or degenerate upstream responses.

    Callers reset a session's count when the session ends. The map is also
    capped at ``max_empty_response_sessions``; the oldest session is dropped
    when a new one arrives at capacity.
    """

    def __init__(self, policy: Optional[BackoffPolicy] = None) -> None:
        self._capacity = (policy or BackoffPolicy()).max_empty_response_sessions
        self._counts: "OrderedDict[str, int]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> int:
        with self._lock:
            return self._counts.get(session_id, 0)

    def increment(self, session_id: str) -> int:
        """Bump the count for a session and return the new value."""
        with self._lock:
            if session_id not in self._counts and len(self._counts) >= self._capacity:
                evicted, _ = self._counts.popitem(last=False)
                log.debug("empty_response_counter_evicted", session=evicted)
            count = self._counts.get(session_id, 0) + 1
            self._counts[session_id] = count
            return count

    def reset(self, session_id: str) -> None:
        with self._lock:
            self._counts.pop(session_id, None)

    def clear(self) -> None:
        """Drop all state (for testing)."""
        with self._lock:
            self._counts.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)
