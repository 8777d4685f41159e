"""
quotaguard Test Configuration

Shared pytest fixtures and configuration for all test types.
"""

from pathlib import Path

import pytest

from quotaguard.core.time import ManualClock
from quotaguard.limits.coordinator import RetryCoordinator
from quotaguard.limits.policy import BackoffPolicy


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")


@pytest.fixture
def clock() -> ManualClock:
    """Provide a manual clock started away from zero."""
    return ManualClock(start_ms=1_000_000)


@pytest.fixture
def policy() -> BackoffPolicy:
    """Provide the default policy."""
    return BackoffPolicy()


@pytest.fixture
def coordinator(policy: BackoffPolicy, clock: ManualClock) -> RetryCoordinator:
    """Provide a fresh coordinator bound to the manual clock."""
    return RetryCoordinator(policy, clock)


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Provide a temporary configuration directory for tests."""
    config_dir = tmp_path / ".quotaguard"
    config_dir.mkdir()
    return config_dir
