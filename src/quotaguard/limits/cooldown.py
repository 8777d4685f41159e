"""Consecutive-failure cooldown tracking.

A simple circuit breaker over non-rate-limit failures. Failure causes are not
distinguished: network errors and account faults accumulate alike.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional

import structlog

from quotaguard.core.time import get_default_clock
from quotaguard.limits.backoff import AccountId
from quotaguard.limits.policy import BackoffPolicy
from quotaguard.protocols.clock import ClockProtocol

log = structlog.get_logger()


@dataclass(frozen=True)
class FailureResult:
    """Outcome of recording one failure.

    Attributes:
        failure_count: Consecutive failures for the account (>= 1).
        should_cooldown: True once the threshold is reached.
        cooldown_ms: Exclusion duration, 0 when no cooldown applies.
    """
    failure_count: int
    should_cooldown: bool
    cooldown_ms: int


@dataclass(frozen=True)
class FailureState:
    consecutive_failures: int
    last_failure_at: int


class FailureCooldownTracker:
    """Per-account consecutive failure counter with a cooldown threshold.

    The counter is not cleared when a cooldown is signalled; only reset()
    (called after a success) or the reset window clears it.
    """

    def __init__(
        self,
        policy: Optional[BackoffPolicy] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._policy = policy or BackoffPolicy()
        self._clock = clock or get_default_clock()
        self._states: Dict[AccountId, FailureState] = {}
        self._lock = threading.Lock()

    def record_failure(self, account_id: AccountId) -> FailureResult:
        """Record a non-rate-limit failure for an account."""
        with self._lock:
            now = self._clock.now_ms()
            previous = self._states.get(account_id)

            if previous is not None and now - previous.last_failure_at < self._policy.failure_reset_window_ms:
                failures = previous.consecutive_failures + 1
            else:
                failures = 1

            self._states[account_id] = FailureState(
                consecutive_failures=failures,
                last_failure_at=now,
            )

        should_cooldown = failures >= self._policy.max_consecutive_failures
        cooldown_ms = self._policy.cooldown_ms if should_cooldown else 0

        if should_cooldown:
            log.warning(
                "account_cooldown_triggered",
                account=account_id,
                failures=failures,
                cooldown_ms=cooldown_ms,
            )
        else:
            log.debug("account_failure_recorded", account=account_id, failures=failures)

        return FailureResult(
            failure_count=failures,
            should_cooldown=should_cooldown,
            cooldown_ms=cooldown_ms,
        )

    def get_state(self, account_id: AccountId) -> Optional[FailureState]:
        """Return the live failure state, or None if absent or expired."""
        with self._lock:
            state = self._states.get(account_id)
            if state is None:
                return None
            if self._clock.now_ms() - state.last_failure_at >= self._policy.failure_reset_window_ms:
                return None
            return state

    def reset(self, account_id: AccountId) -> None:
        """Clear the failure count for an account."""
        with self._lock:
            self._states.pop(account_id, None)

    def clear(self) -> None:
        """Drop all state (for testing)."""
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
