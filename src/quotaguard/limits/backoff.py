"""Rate-limit backoff tracking with time-window deduplication.

When several in-flight requests hit the same upstream throttling event,
each of them reports a rate-limit signal within a few milliseconds. Counting
every report would compound the backoff exponent once per request instead
of once per incident. State is therefore tracked per account + quota class,
and signals arriving inside the dedup window are reported as duplicates of
the incident already recorded.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

import structlog

from quotaguard.core.time import get_default_clock
from quotaguard.limits.policy import BackoffPolicy
from quotaguard.protocols.clock import ClockProtocol

log = structlog.get_logger()

AccountId = Union[int, str]


@dataclass(frozen=True)
class BackoffResult:
    """Backoff decision for one rate-limit signal.

    Attributes:
        attempt_number: Consecutive incident count for the key (>= 1).
        delay_ms: How long the caller should wait before retrying.
        is_duplicate: True if the signal was folded into the previous incident.
    """
    attempt_number: int
    delay_ms: int
    is_duplicate: bool


@dataclass(frozen=True)
class RateLimitState:
    """Recorded incident state for one account + quota class."""
    consecutive_count: int
    last_signal_at: int
    quota_class: str


class RateLimitBackoffTracker:
    """Exponential backoff per (account, quota class) with burst dedup.

    Thread-safe: every read-modify-write of a key happens under one lock.
    """

    def __init__(
        self,
        policy: Optional[BackoffPolicy] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._policy = policy or BackoffPolicy()
        self._clock = clock or get_default_clock()
        self._states: Dict[Tuple[AccountId, str], RateLimitState] = {}
        self._lock = threading.Lock()

    @property
    def policy(self) -> BackoffPolicy:
        """Return the active policy."""
        return self._policy

    def compute_delay(self, attempt_number: int, server_delay_ms: Optional[int] = None) -> int:
        """Exponential delay for an incident count.

        The first incident waits exactly the base delay. The cap never pushes
        the delay below the base, so an explicit server hint above the cap is
        still honoured.
        """
        base = self._policy.default_delay_ms if server_delay_ms is None else server_delay_ms
        cap = self._policy.max_backoff_ms
        backoff = base
        # Stop doubling at the cap so long incident chains stay bounded.
        for _ in range(attempt_number - 1):
            if backoff >= cap or backoff <= 0:
                break
            backoff *= 2
        return int(max(base, min(backoff, cap)))

    def record_signal(
        self,
        account_id: AccountId,
        quota_class: str,
        server_delay_ms: Optional[int] = None,
    ) -> BackoffResult:
        """Record a rate-limit response and compute the wait before retrying.

        Args:
            account_id: Account that was throttled.
            quota_class: Quota pool the request counted against.
            server_delay_ms: Retry hint from the upstream, if any.

        Returns:
            BackoffResult for this signal.
        """
        key = (account_id, quota_class)

        with self._lock:
            now = self._clock.now_ms()
            previous = self._states.get(key)

            if previous is not None and now - previous.last_signal_at < self._policy.dedup_window_ms:
                attempt = previous.consecutive_count
                delay = self.compute_delay(attempt, server_delay_ms)
                log.debug(
                    "rate_limit_duplicate",
                    account=account_id,
                    quota=quota_class,
                    attempt=attempt,
                    delay_ms=delay,
                )
                return BackoffResult(attempt_number=attempt, delay_ms=delay, is_duplicate=True)

            if previous is not None and now - previous.last_signal_at < self._policy.reset_window_ms:
                attempt = previous.consecutive_count + 1
            else:
                attempt = 1

            self._states[key] = RateLimitState(
                consecutive_count=attempt,
                last_signal_at=now,
                quota_class=quota_class,
            )

        delay = self.compute_delay(attempt, server_delay_ms)
        log.info(
            "rate_limit_recorded",
            account=account_id,
            quota=quota_class,
            attempt=attempt,
            delay_ms=delay,
        )
        return BackoffResult(attempt_number=attempt, delay_ms=delay, is_duplicate=False)

    def is_short_retry(self, delay_ms: int) -> bool:
        """Return True if the delay is short enough to retry on the same account."""
        return delay_ms <= self._policy.short_retry_threshold_ms

    def get_state(self, account_id: AccountId, quota_class: str) -> Optional[RateLimitState]:
        """Return the live state for a key, or None if absent or expired."""
        with self._lock:
            state = self._states.get((account_id, quota_class))
            if state is None:
                return None
            if self._clock.now_ms() - state.last_signal_at >= self._policy.reset_window_ms:
                return None
            return state

    def reset(self, account_id: AccountId, quota_class: str) -> None:
        """Forget the incident history of one account + quota class."""
        with self._lock:
            removed = self._states.pop((account_id, quota_class), None)
        if removed is not None:
            log.debug("rate_limit_reset", account=account_id, quota=quota_class)

    def reset_account(self, account_id: AccountId) -> None:
        """Forget the incident history of every quota class of an account."""
        with self._lock:
            keys = [key for key in self._states if key[0] == account_id]
            for key in keys:
                del self._states[key]
        if keys:
            log.debug("rate_limit_account_reset", account=account_id, quotas=[k[1] for k in keys])

    def clear(self) -> None:
        """Drop all state (for testing)."""
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
