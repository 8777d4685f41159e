"""Unit tests for RateLimitBackoffTracker."""

import threading

import pytest
from structlog.testing import capture_logs

from quotaguard.core.time import ManualClock
from quotaguard.limits.backoff import BackoffResult, RateLimitBackoffTracker
from quotaguard.limits.policy import BackoffPolicy


@pytest.fixture
def tracker(policy: BackoffPolicy, clock: ManualClock) -> RateLimitBackoffTracker:
    return RateLimitBackoffTracker(policy, clock)


@pytest.mark.unit
class TestDeduplication:
    """Bursts of signals inside the dedup window count as one incident."""

    def test_first_signal_is_fresh(self, tracker):
        result = tracker.record_signal("acct1", "claude")
        assert result == BackoffResult(attempt_number=1, delay_ms=1000, is_duplicate=False)

    def test_immediate_repeat_is_duplicate(self, tracker):
        """Scenario A: same attempt number, same delay."""
        first = tracker.record_signal("acct1", "claude", None)
        second = tracker.record_signal("acct1", "claude", None)

        assert first.attempt_number == 1
        assert first.is_duplicate is False
        assert second.attempt_number == 1
        assert second.is_duplicate is True
        assert first.delay_ms == second.delay_ms == 1000

    def test_signal_just_inside_window_is_duplicate(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(1999)
        assert tracker.record_signal("acct1", "claude").is_duplicate is True

    def test_signal_at_window_edge_is_fresh(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(2000)
        result = tracker.record_signal("acct1", "claude")
        assert result.is_duplicate is False
        assert result.attempt_number == 2

    def test_duplicate_does_not_extend_window(self, tracker, clock):
        """Duplicates leave last_signal_at untouched."""
        tracker.record_signal("acct1", "claude")
        clock.advance(1500)
        assert tracker.record_signal("acct1", "claude").is_duplicate is True
        clock.advance(600)
        result = tracker.record_signal("acct1", "claude")
        assert result.is_duplicate is False
        assert result.attempt_number == 2

    def test_duplicate_uses_current_server_hint(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(3000)
        tracker.record_signal("acct1", "claude")
        duplicate = tracker.record_signal("acct1", "claude", 4000)
        assert duplicate.is_duplicate is True
        assert duplicate.attempt_number == 2
        assert duplicate.delay_ms == 8000


@pytest.mark.unit
class TestEscalationAndReset:
    """Distinct incidents escalate until the reset window passes."""

    def test_spaced_signals_escalate(self, tracker, clock):
        """Scenario B: 3s apart with a 5s server hint."""
        results = []
        for _ in range(3):
            results.append(tracker.record_signal("acct1", "claude", 5000))
            clock.advance(3000)

        assert [r.attempt_number for r in results] == [1, 2, 3]
        assert [r.delay_ms for r in results] == [5000, 10000, 20000]
        assert not any(r.is_duplicate for r in results)

    def test_attempt_increases_by_one(self, tracker, clock):
        previous = tracker.record_signal(7, "gemini-cli").attempt_number
        for _ in range(10):
            clock.advance(5000)
            current = tracker.record_signal(7, "gemini-cli").attempt_number
            assert current == previous + 1
            previous = current

    def test_reset_window_restarts_count(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(3000)
        assert tracker.record_signal("acct1", "claude").attempt_number == 2

        clock.advance(120_000)
        result = tracker.record_signal("acct1", "claude")
        assert result.attempt_number == 1
        assert result.delay_ms == 1000

    def test_just_inside_reset_window_still_escalates(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(119_999)
        assert tracker.record_signal("acct1", "claude").attempt_number == 2


@pytest.mark.unit
class TestDelayFormula:
    """Delay is base * 2^(attempt-1), capped, never below base."""

    def test_delay_is_monotonic_and_capped(self, tracker):
        delays = [tracker.compute_delay(n) for n in range(1, 20)]
        assert delays == sorted(delays)
        assert max(delays) == 60_000
        assert delays[:4] == [1000, 2000, 4000, 8000]

    def test_server_hint_above_cap_is_kept(self, tracker):
        assert tracker.compute_delay(1, 90_000) == 90_000
        assert tracker.compute_delay(5, 90_000) == 90_000

    def test_zero_server_hint(self, tracker):
        assert tracker.compute_delay(3, 0) == 0

    def test_long_incident_chain_stays_capped(self, tracker, clock):
        for _ in range(50):
            result = tracker.record_signal("acct1", "claude")
            clock.advance(2500)
        assert result.attempt_number == 50
        assert result.delay_ms == 60_000

    def test_float_hint_over_long_incident_chain(self, tracker, clock):
        for _ in range(1100):
            result = tracker.record_signal(0, "claude", 1500.0)
            clock.advance(2500)
        assert result.attempt_number == 1100
        assert result.delay_ms == 60_000
        assert isinstance(result.delay_ms, int)

    def test_huge_attempt_number_is_capped(self, tracker):
        assert tracker.compute_delay(10**6) == 60_000
        assert tracker.compute_delay(10**6, 1500.0) == 60_000

    def test_float_hint_returns_int(self, tracker):
        delay = tracker.compute_delay(2, 1500.0)
        assert delay == 3000
        assert isinstance(delay, int)

    def test_custom_policy(self, clock):
        policy = BackoffPolicy(default_delay_ms=250, max_backoff_ms=1000)
        tracker = RateLimitBackoffTracker(policy, clock)
        assert [tracker.compute_delay(n) for n in (1, 2, 3, 4)] == [250, 500, 1000, 1000]

    def test_short_retry_threshold(self, tracker):
        assert tracker.is_short_retry(1000) is True
        assert tracker.is_short_retry(5000) is True
        assert tracker.is_short_retry(5001) is False


@pytest.mark.unit
class TestKeysAndResets:
    """State is per account + quota class."""

    def test_quota_classes_are_independent(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(3000)
        assert tracker.record_signal("acct1", "claude").attempt_number == 2
        assert tracker.record_signal("acct1", "gemini-cli").attempt_number == 1

    def test_accounts_are_independent(self, tracker):
        tracker.record_signal(1, "claude")
        result = tracker.record_signal(2, "claude")
        assert result.is_duplicate is False
        assert result.attempt_number == 1

    def test_int_and_str_ids_do_not_collide(self, tracker):
        tracker.record_signal(1, "claude")
        assert tracker.record_signal("1", "claude").is_duplicate is False

    def test_reset_one_key(self, tracker):
        tracker.record_signal("acct1", "claude")
        tracker.record_signal("acct1", "gemini-cli")
        tracker.reset("acct1", "claude")

        assert tracker.get_state("acct1", "claude") is None
        assert tracker.get_state("acct1", "gemini-cli") is not None
        assert tracker.record_signal("acct1", "claude").is_duplicate is False

    def test_reset_unknown_key_is_noop(self, tracker):
        tracker.reset("nobody", "claude")
        assert len(tracker) == 0

    def test_reset_account_removes_all_quotas(self, tracker):
        tracker.record_signal(1, "claude")
        tracker.record_signal(1, "gemini-cli")
        tracker.record_signal(1, "gemini-antigravity")
        tracker.record_signal(11, "claude")

        tracker.reset_account(1)

        assert len(tracker) == 1
        assert tracker.get_state(11, "claude") is not None

    def test_get_state_expires(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        state = tracker.get_state("acct1", "claude")
        assert state.consecutive_count == 1
        assert state.quota_class == "claude"
        assert state.last_signal_at == clock.now_ms()

        clock.advance(120_000)
        assert tracker.get_state("acct1", "claude") is None

    def test_clear(self, tracker):
        tracker.record_signal("a", "claude")
        tracker.record_signal("b", "claude")
        tracker.clear()
        assert len(tracker) == 0


@pytest.mark.unit
class TestConcurrency:
    """Concurrent signals for one key collapse into a single incident."""

    def test_threads_record_one_incident(self, tracker, clock):
        tracker.record_signal("acct1", "claude")
        clock.advance(3000)

        results = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            result = tracker.record_signal("acct1", "claude")
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        fresh = [r for r in results if not r.is_duplicate]
        assert len(fresh) == 1
        assert all(r.attempt_number == 2 for r in results)
        assert tracker.get_state("acct1", "claude").consecutive_count == 2


@pytest.mark.unit
class TestLogging:

    def test_fresh_and_duplicate_events_logged(self, tracker):
        with capture_logs() as logs:
            tracker.record_signal("acct1", "claude")
            tracker.record_signal("acct1", "claude")

        events = [entry["event"] for entry in logs]
        assert events == ["rate_limit_recorded", "rate_limit_duplicate"]
        assert logs[0]["attempt"] == 1
        assert logs[0]["account"] == "acct1"
