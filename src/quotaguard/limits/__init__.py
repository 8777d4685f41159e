from .policy import BackoffPolicy
from .quota import ModelFamily, HeaderStyle, header_style_to_quota_key
from .backoff import AccountId, BackoffResult, RateLimitState, RateLimitBackoffTracker
from .cooldown import FailureResult, FailureState, FailureCooldownTracker
from .warmup import WarmupSessionTracker
from .empty_response import EmptyResponseCounter
from .coordinator import (
    RetryCoordinator,
    initialize_coordinator,
    get_coordinator,
    shutdown_coordinator,
)

__all__ = [
    "BackoffPolicy",
    "ModelFamily",
    "HeaderStyle",
    "header_style_to_quota_key",
    "AccountId",
    "BackoffResult",
    "RateLimitState",
    "RateLimitBackoffTracker",
    "FailureResult",
    "FailureState",
    "FailureCooldownTracker",
    "WarmupSessionTracker",
    "EmptyResponseCounter",
    "RetryCoordinator",
    "initialize_coordinator",
    "get_coordinator",
    "shutdown_coordinator",
]
