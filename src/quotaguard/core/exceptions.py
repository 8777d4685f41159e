"""quotaguard Exception Hierarchy.

All custom exceptions inherit from QuotaGuardError, enabling consistent
error handling across the codebase.

The trackers themselves never raise for unknown accounts or sessions; an
unrecognised key is simply "no prior state". Exceptions are reserved for
configuration problems and malformed replay input.

Usage:
    from quotaguard.core.exceptions import ConfigurationError

    raise ConfigurationError(
        config_path="~/.quotaguard/config.yaml",
        key="backoff.dedup_window_ms",
        expected_type="positive int",
    )
"""

from typing import Any, Optional


class QuotaGuardError(Exception):
    """Base exception for all quotaguard errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        """Initialize QuotaGuardError.

        Args:
            message: Optional custom message. Defaults to a generic message.
        """
        self.message = message or "A quotaguard error occurred."
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context dictionary for structured logging.

        Returns:
            dict: Key-value pairs of exception context.
        """
        return {}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(QuotaGuardError):
    """Configuration file or value is invalid.

    Raised when YAML configuration cannot be parsed or
    contains invalid values.

    Attributes:
        config_path: Path to the configuration file.
        key: The configuration key that caused the error.
        expected_type: The expected type for the value.
    """

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        expected_type: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            config_path: Path to the config file.
            key: Optional key that caused the error.
            expected_type: Optional expected type.
            message: Optional custom message.
        """
        self.config_path = config_path
        self.key = key
        self.expected_type = expected_type

        if message is None:
            key_info = f" key '{key}'" if key else ""
            type_info = f" (expected {expected_type})" if expected_type else ""
            message = f"Configuration error in '{config_path}'{key_info}{type_info}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for configuration error."""
        return {
            "config_path": self.config_path,
            "key": self.key,
            "expected_type": self.expected_type,
        }


class EventReplayError(QuotaGuardError):
    """A replayed outcome event is malformed.

    Raised by the replay tooling when an event record is missing a
    required field or names an unknown event type.

    Attributes:
        index: Position of the offending event in the input list.
        field: The field that was missing or invalid, if known.
    """

    def __init__(
        self,
        index: int,
        field: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.index = index
        self.field = field

        if message is None:
            field_info = f" field '{field}'" if field else ""
            message = f"Invalid event at index {index}:{field_info} missing or malformed."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for replay error."""
        return {
            "index": self.index,
            "field": self.field,
        }

    def __repr__(self) -> str:
        return f"EventReplayError(index={self.index!r}, field={self.field!r})"
