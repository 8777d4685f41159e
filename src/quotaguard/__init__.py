"""
quotaguard - retry and backoff coordination for rate-limited account pools

Decides how long to wait after a rate limit, when to cool an account down,
and when to stop retrying a per-session warm-up.
"""

from quotaguard.protocols import ClockProtocol
from quotaguard.limits import (
    BackoffPolicy,
    BackoffResult,
    FailureResult,
    RateLimitBackoffTracker,
    FailureCooldownTracker,
    WarmupSessionTracker,
    EmptyResponseCounter,
    RetryCoordinator,
    header_style_to_quota_key,
)

__version__ = "0.1.0"

__all__ = [
    "ClockProtocol",
    "BackoffPolicy",
    "BackoffResult",
    "FailureResult",
    "RateLimitBackoffTracker",
    "FailureCooldownTracker",
    "WarmupSessionTracker",
    "EmptyResponseCounter",
    "RetryCoordinator",
    "header_style_to_quota_key",
]
