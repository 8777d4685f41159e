"""Replay recorded outcome events through a RetryCoordinator.

Useful for checking how a policy reacts to a captured burst of rate-limit
and failure events without touching any upstream. Time is simulated with a
ManualClock positioned at each event's ``at_ms``.

Event format (one mapping per event, in time order):

    - at_ms: 0
      type: rate_limited
      account: 0
      family: claude            # or quota: claude
      header_style: antigravity
      retry_after_ms: 5000      # optional
    - at_ms: 100
      type: failed
      account: 0
    - at_ms: 200
      type: warmup
      session: abc
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import structlog
import yaml

from quotaguard.core.exceptions import ConfigurationError, EventReplayError
from quotaguard.core.time import ManualClock
from quotaguard.limits.backoff import AccountId
from quotaguard.limits.coordinator import RetryCoordinator
from quotaguard.limits.policy import BackoffPolicy
from quotaguard.limits.quota import header_style_to_quota_key

log = structlog.get_logger()

EVENT_TYPES = frozenset({
    "rate_limited",
    "failed",
    "succeeded",
    "reactivated",
    "warmup",
    "warmup_succeeded",
    "empty_response",
    "session_end",
})

_ACCOUNT_EVENTS = frozenset({"rate_limited", "failed", "succeeded", "reactivated"})
_QUOTA_EVENTS = frozenset({"rate_limited", "succeeded"})
_SESSION_EVENTS = frozenset({"warmup", "warmup_succeeded", "empty_response", "session_end"})


def load_events(path: Path) -> List[Dict[str, Any]]:
    """Load a YAML list of events.

    Raises:
        ConfigurationError: If the file is unreadable or not a list.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(config_path=str(path), message=f"Events file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(config_path=str(path), message=f"Invalid YAML in {path}: {e}")

    if content is None:
        return []
    if not isinstance(content, list):
        raise ConfigurationError(
            config_path=str(path),
            expected_type="list",
            message=f"Events file {path} must contain a list of events",
        )
    return content


def _require(event: Dict[str, Any], index: int, field: str) -> Any:
    value = event.get(field)
    if value is None:
        raise EventReplayError(index=index, field=field)
    return value


def _account_for(event: Dict[str, Any], index: int) -> AccountId:
    account = _require(event, index, "account")
    if isinstance(account, bool) or not isinstance(account, (int, str)):
        raise EventReplayError(
            index=index,
            field="account",
            message=f"Invalid event at index {index}: account must be an integer or string, got {account!r}",
        )
    return account


def _retry_after_for(event: Dict[str, Any], index: int) -> Optional[int]:
    retry_after = event.get("retry_after_ms")
    if retry_after is None:
        return None
    try:
        value = int(retry_after)
    except (TypeError, ValueError, OverflowError) as e:
        raise EventReplayError(
            index=index,
            field="retry_after_ms",
            message=f"Invalid event at index {index}: retry_after_ms {retry_after!r} ({e})",
        ) from e
    if isinstance(retry_after, bool) or value < 0:
        raise EventReplayError(
            index=index,
            field="retry_after_ms",
            message=f"Invalid event at index {index}: retry_after_ms {retry_after!r} must be a non-negative number",
        )
    return value


def _quota_for(event: Dict[str, Any], index: int) -> str:
    quota = event.get("quota")
    if quota is not None:
        return str(quota)
    family = _require(event, index, "family")
    header_style = event.get("header_style", "antigravity")
    try:
        return header_style_to_quota_key(header_style, family)
    except ValueError as e:
        raise EventReplayError(index=index, field="family", message=f"Invalid event at index {index}: {e}") from e


def replay_events(
    events: Iterable[Dict[str, Any]],
    policy: Optional[BackoffPolicy] = None,
) -> List[Dict[str, Any]]:
    """Feed events to a fresh coordinator and collect its decisions.

    Args:
        events: Event mappings in non-decreasing ``at_ms`` order.
        policy: Policy for the coordinator. Defaults to BackoffPolicy().

    Returns:
        One decision mapping per event.

    Raises:
        EventReplayError: If an event is malformed or out of order.
    """
    clock = ManualClock()
    coordinator = RetryCoordinator(policy, clock)
    decisions: List[Dict[str, Any]] = []

    for index, event in enumerate(events):
        if not isinstance(event, dict):
            raise EventReplayError(index=index, message=f"Invalid event at index {index}: not a mapping")

        event_type = str(_require(event, index, "type"))
        if event_type not in EVENT_TYPES:
            raise EventReplayError(
                index=index,
                field="type",
                message=f"Invalid event at index {index}: unknown type '{event_type}'",
            )

        at_ms = event.get("at_ms", clock.now_ms())
        try:
            clock.set(int(at_ms))
        except (TypeError, ValueError, OverflowError) as e:
            raise EventReplayError(
                index=index,
                field="at_ms",
                message=f"Invalid event at index {index}: at_ms {at_ms!r} ({e})",
            ) from e

        decision: Dict[str, Any] = {"at_ms": clock.now_ms(), "type": event_type}

        if event_type in _ACCOUNT_EVENTS:
            account = _account_for(event, index)
            decision["account"] = account
        if event_type in _QUOTA_EVENTS:
            quota = _quota_for(event, index)
            decision["quota"] = quota
        if event_type in _SESSION_EVENTS:
            session = str(_require(event, index, "session"))
            decision["session"] = session

        if event_type == "rate_limited":
            retry_after = _retry_after_for(event, index)
            result = coordinator.record_rate_limit(account, quota, retry_after)
            decision.update(
                attempt=result.attempt_number,
                delay_ms=result.delay_ms,
                duplicate=result.is_duplicate,
                short_retry=coordinator.backoff.is_short_retry(result.delay_ms),
            )
        elif event_type == "failed":
            result = coordinator.record_failure(account)
            decision.update(
                failures=result.failure_count,
                should_cooldown=result.should_cooldown,
                cooldown_ms=result.cooldown_ms,
            )
        elif event_type == "succeeded":
            coordinator.record_success(account, quota)
        elif event_type == "reactivated":
            coordinator.reactivate_account(account)
        elif event_type == "warmup":
            decision["proceed"] = coordinator.warmup.try_begin_attempt(session)
            decision["attempts"] = coordinator.warmup.attempt_count(session)
        elif event_type == "warmup_succeeded":
            coordinator.warmup.mark_succeeded(session)
        elif event_type == "empty_response":
            decision["count"] = coordinator.empty_responses.increment(session)
        elif event_type == "session_end":
            coordinator.end_session(session)

        decisions.append(decision)

    log.info("replay_complete", events=len(decisions))
    return decisions


def replay_file(path: Path, policy: Optional[BackoffPolicy] = None) -> List[Dict[str, Any]]:
    """Load events from a YAML file and replay them."""
    return replay_events(load_events(path), policy)
