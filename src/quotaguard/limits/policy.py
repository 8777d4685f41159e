"""Tunables for rate-limit backoff, failure cooldown and warm-up tracking."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from quotaguard.core.config import Settings


@dataclass(frozen=True)
class BackoffPolicy:
    """Configuration shared by every tracker (durations in milliseconds).

    Attributes:
        dedup_window_ms: Signals for one key closer than this are one incident.
        reset_window_ms: Quiet period after which the rate-limit count restarts.
        max_backoff_ms: Ceiling for the exponential delay.
        default_delay_ms: Base delay when the upstream gives no retry hint.
        short_retry_threshold_ms: Delays at or below this retry on the same account.
        max_consecutive_failures: Failures before an account is cooled down.
        cooldown_ms: How long a cooled-down account stays out of rotation.
        failure_reset_window_ms: Quiet period after which the failure count restarts.
        max_warmup_sessions: Capacity of each warm-up membership map.
        max_warmup_retries: Warm-up attempts allowed per session.
        max_empty_response_sessions: Capacity of the empty-response counter map.
        max_accounts: Account pool ceiling (enforced by the account manager).
    """

    dedup_window_ms: int = 2000
    reset_window_ms: int = 120_000
    max_backoff_ms: int = 60_000
    default_delay_ms: int = 1000
    short_retry_threshold_ms: int = 5000
    max_consecutive_failures: int = 5
    cooldown_ms: int = 30_000
    failure_reset_window_ms: int = 120_000
    max_warmup_sessions: int = 1000
    max_warmup_retries: int = 2
    max_empty_response_sessions: int = 1000
    max_accounts: int = 10

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name in (
            "dedup_window_ms",
            "reset_window_ms",
            "max_backoff_ms",
            "default_delay_ms",
            "cooldown_ms",
            "failure_reset_window_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.short_retry_threshold_ms < 0:
            raise ValueError("short_retry_threshold_ms must be >= 0")
        if self.dedup_window_ms > self.reset_window_ms:
            raise ValueError("dedup_window_ms must not exceed reset_window_ms")
        if self.max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1")
        if self.max_warmup_sessions < 1:
            raise ValueError("max_warmup_sessions must be >= 1")
        if self.max_warmup_retries < 1:
            raise ValueError("max_warmup_retries must be >= 1")
        if self.max_empty_response_sessions < 1:
            raise ValueError("max_empty_response_sessions must be >= 1")
        if self.max_accounts < 1:
            raise ValueError("max_accounts must be >= 1")

    @classmethod
    def from_settings(cls, settings: Optional["Settings"] = None) -> "BackoffPolicy":
        """Build a policy from the ``backoff`` section of Settings.

        Args:
            settings: Settings instance. Defaults to the global singleton.
        """
        if settings is None:
            from quotaguard.core.config import get_settings

            settings = get_settings()
        return cls(**settings.backoff.model_dump())

    def to_dict(self) -> Dict[str, Any]:
        """Return the policy as a plain dictionary."""
        return asdict(self)
