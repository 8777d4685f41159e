"""Warm-up session tracking.

Some sessions need a one-time warm-up handshake before their first real
request. The handshake may fail and be retried a bounded number of times.
This tracker remembers how many attempts each session has used and which
sessions already completed, with bounded memory.

Per session:

    unknown -> attempting (up to max_warmup_retries) -> succeeded
                                                    \\-> exhausted

Both maps evict their oldest insertion when a new session arrives at
capacity. Eviction is by insertion order, not by recency of use.
"""

import threading
from collections import OrderedDict
from typing import Optional

import structlog

from quotaguard.limits.policy import BackoffPolicy

log = structlog.get_logger()


class WarmupSessionTracker:
    """Bounded per-session warm-up attempt counter and success registry."""

    def __init__(self, policy: Optional[BackoffPolicy] = None) -> None:
        self._policy = policy or BackoffPolicy()
        self._attempts: "OrderedDict[str, int]" = OrderedDict()
        self._succeeded: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()

    def try_begin_attempt(self, session_id: str) -> bool:
        """Claim a warm-up attempt for a session.

        Returns:
            True if the caller may run the warm-up now, False if the session
            already succeeded or has used all of its attempts.
        """
        with self._lock:
            if session_id in self._succeeded:
                return False

            attempts = self._attempts.get(session_id, 0)
            if attempts >= self._policy.max_warmup_retries:
                log.warning("warmup_exhausted", session=session_id, attempts=attempts)
                return False

            if session_id not in self._attempts and len(self._attempts) >= self._policy.max_warmup_sessions:
                evicted, _ = self._attempts.popitem(last=False)
                log.debug("warmup_attempt_evicted", session=evicted)

            self._attempts[session_id] = attempts + 1

        log.debug("warmup_attempt_started", session=session_id, attempt=attempts + 1)
        return True

    def mark_succeeded(self, session_id: str) -> None:
        """Record that a session completed its warm-up."""
        with self._lock:
            if session_id in self._succeeded:
                return
            if len(self._succeeded) >= self._policy.max_warmup_sessions:
                evicted, _ = self._succeeded.popitem(last=False)
                log.debug("warmup_success_evicted", session=evicted)
            self._succeeded[session_id] = None

        log.info("warmup_succeeded", session=session_id)

    def has_succeeded(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._succeeded

    def attempt_count(self, session_id: str) -> int:
        """Number of warm-up attempts the session has used."""
        with self._lock:
            return self._attempts.get(session_id, 0)

    def clear_attempt(self, session_id: str) -> None:
        """Return a session to the unknown state so a fresh warm-up may run.

        Used when the session's underlying context was invalidated; the
        attempt count and any success flag are both dropped.
        """
        with self._lock:
            self._attempts.pop(session_id, None)
            self._succeeded.pop(session_id, None)

    @property
    def attempted_count(self) -> int:
        """Number of sessions currently holding an attempt count."""
        with self._lock:
            return len(self._attempts)

    @property
    def succeeded_count(self) -> int:
        """Number of sessions currently flagged as succeeded."""
        with self._lock:
            return len(self._succeeded)

    def clear(self) -> None:
        """Drop all state (for testing)."""
        with self._lock:
            self._attempts.clear()
            self._succeeded.clear()
