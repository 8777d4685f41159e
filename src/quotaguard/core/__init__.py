"""Core module for quotaguard.

Exports the core components: exceptions, configuration and clocks.
"""

from quotaguard.core.exceptions import (
    QuotaGuardError,
    ConfigurationError,
    EventReplayError,
)
from quotaguard.core.config import (
    get_settings,
    reset_settings,
    create_settings,
    Settings,
    BackoffConfig,
    LoggingConfig,
)
from quotaguard.core.time import (
    SystemClock,
    ManualClock,
    get_default_clock,
)

__all__ = [
    # Exceptions
    "QuotaGuardError",
    "ConfigurationError",
    "EventReplayError",
    # Configuration
    "get_settings",
    "reset_settings",
    "create_settings",
    "Settings",
    "BackoffConfig",
    "LoggingConfig",
    # Clocks
    "SystemClock",
    "ManualClock",
    "get_default_clock",
]
