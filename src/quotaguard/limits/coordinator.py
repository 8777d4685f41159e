import threading
from typing import Optional

import structlog

from quotaguard.core.config import Settings
from quotaguard.core.time import get_default_clock
from quotaguard.limits.backoff import AccountId, BackoffResult, RateLimitBackoffTracker
from quotaguard.limits.cooldown import FailureCooldownTracker, FailureResult
from quotaguard.limits.empty_response import EmptyResponseCounter
from quotaguard.limits.policy import BackoffPolicy
from quotaguard.limits.warmup import WarmupSessionTracker
from quotaguard.protocols.clock import ClockProtocol

log = structlog.get_logger()

# Singleton instance
_coordinator_instance: Optional["RetryCoordinator"] = None
_coordinator_lock = threading.Lock()


def initialize_coordinator(
    policy: Optional[BackoffPolicy] = None,
    clock: Optional[ClockProtocol] = None,
) -> "RetryCoordinator":
    """Initialize the process-wide coordinator instance."""
    global _coordinator_instance
    with _coordinator_lock:
        if _coordinator_instance is not None:
            raise RuntimeError("Coordinator already initialized")
        _coordinator_instance = RetryCoordinator(policy, clock)
        return _coordinator_instance


def get_coordinator() -> "RetryCoordinator":
    """Get the process-wide coordinator instance."""
    if _coordinator_instance is None:
        raise RuntimeError("Coordinator not initialized - call initialize_coordinator() first")
    return _coordinator_instance


def shutdown_coordinator() -> None:
    """Drop the process-wide coordinator instance."""
    global _coordinator_instance
    with _coordinator_lock:
        _coordinator_instance = None


class RetryCoordinator:
    """Owns one of each tracker and routes outcome events to them.

    The request layer reports each finished attempt here and acts on the
    returned decisions: sleep for ``delay_ms``, rotate away from a cooled
    down account, or stop a warm-up loop. Several coordinators can coexist
    in one process; tests usually build their own with a ManualClock.
    """

    def __init__(
        self,
        policy: Optional[BackoffPolicy] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._policy = policy or BackoffPolicy()
        self._clock = clock or get_default_clock()

        self.backoff = RateLimitBackoffTracker(self._policy, self._clock)
        self.cooldown = FailureCooldownTracker(self._policy, self._clock)
        self.warmup = WarmupSessionTracker(self._policy)
        self.empty_responses = EmptyResponseCounter(self._policy)

        log.info(
            "coordinator_initialized",
            dedup_window_ms=self._policy.dedup_window_ms,
            max_backoff_ms=self._policy.max_backoff_ms,
            max_consecutive_failures=self._policy.max_consecutive_failures,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> "RetryCoordinator":
        """Build a coordinator from Settings (global singleton by default)."""
        return cls(BackoffPolicy.from_settings(settings), clock)

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    @property
    def clock(self) -> ClockProtocol:
        return self._clock

    def record_rate_limit(
        self,
        account_id: AccountId,
        quota_class: str,
        server_delay_ms: Optional[int] = None,
    ) -> BackoffResult:
        """Report a rate-limit response; returns how long to wait."""
        return self.backoff.record_signal(account_id, quota_class, server_delay_ms)

    def record_failure(self, account_id: AccountId) -> FailureResult:
        """Report a non-rate-limit failure; returns whether to cool down."""
        return self.cooldown.record_failure(account_id)

    def record_success(self, account_id: AccountId, quota_class: str) -> None:
        """Report a success: clears backoff for the key and the account's failures."""
        self.backoff.reset(account_id, quota_class)
        self.cooldown.reset(account_id)

    def reactivate_account(self, account_id: AccountId) -> None:
        """Forget all state for an account returning to rotation."""
        self.backoff.reset_account(account_id)
        self.cooldown.reset(account_id)
        log.info("account_reactivated", account=account_id)

    def end_session(self, session_id: str) -> None:
        """Session teardown hook; releases per-session retry counters."""
        self.empty_responses.reset(session_id)

    def clear(self) -> None:
        """Drop all tracker state (for testing)."""
        self.backoff.clear()
        self.cooldown.clear()
        self.warmup.clear()
        self.empty_responses.clear()
