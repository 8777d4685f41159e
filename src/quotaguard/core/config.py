"""quotaguard Configuration System.

Layered YAML configuration with Pydantic validation.
Supports a system config file, environment variables and runtime overrides.

Config Layer Priority (highest to lowest):
1. Runtime overrides (in-memory)
2. System config (~/.quotaguard/config.yaml)
3. Environment variables (QUOTAGUARD_ prefix, ``__`` for nesting)
4. Defaults (defined in Pydantic models)

Usage:
    from quotaguard.core.config import get_settings

    settings = get_settings()
    print(settings.backoff.dedup_window_ms)  # 2000 (default)
"""

from __future__ import annotations

import threading
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, NonNegativeInt, PositiveInt, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quotaguard.core.exceptions import ConfigurationError


DEFAULT_CONFIG_DIR = Path.home() / ".quotaguard"


# =============================================================================
# Sub-configuration Models (nested sections)
# =============================================================================


class BackoffConfig(BaseModel):
    """Rate-limit, cooldown and warm-up tunables (all durations in ms)."""

    dedup_window_ms: PositiveInt = 2000
    reset_window_ms: PositiveInt = 120_000
    max_backoff_ms: PositiveInt = 60_000
    default_delay_ms: PositiveInt = 1000
    short_retry_threshold_ms: NonNegativeInt = 5000
    max_consecutive_failures: PositiveInt = 5
    cooldown_ms: PositiveInt = 30_000
    failure_reset_window_ms: PositiveInt = 120_000
    max_warmup_sessions: PositiveInt = 1000
    max_warmup_retries: PositiveInt = 2
    max_empty_response_sessions: PositiveInt = 1000
    max_accounts: PositiveInt = 10  # enforced by the account manager

    @model_validator(mode="after")
    def check_windows(self) -> "BackoffConfig":
        """Dedup window must not outlast the reset window."""
        if self.dedup_window_ms > self.reset_window_ms:
            raise ValueError("dedup_window_ms must not exceed reset_window_ms")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Only JSON and console renderers are supported."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v.lower()


# =============================================================================
# Main Configuration Model
# =============================================================================


class Settings(BaseSettings):
    """Main settings class with layered configuration support.

    Loads configuration from:
    1. Environment variables (QUOTAGUARD_ prefix)
    2. System config file (~/.quotaguard/config.yaml)
    3. Defaults defined in Pydantic models
    """

    model_config = SettingsConfigDict(
        env_prefix="QUOTAGUARD_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    logging_config: LoggingConfig = Field(
        default_factory=LoggingConfig, alias="logging"
    )

    @property
    def logging(self) -> LoggingConfig:
        """Alias for logging_config to match YAML key and common usage."""
        return self.logging_config


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigurationError: If file cannot be read or parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Configuration file not found: {path}",
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Invalid YAML in {path}: {e}",
        )

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            config_path=str(path),
            expected_type="mapping",
            message=f"Top level of {path} must be a mapping",
        )
    return content


def load_system_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load system configuration from YAML file.

    Args:
        path: Optional path to config file. Defaults to ~/.quotaguard/config.yaml.

    Returns:
        System configuration dictionary (empty if the default file is absent).

    Raises:
        ConfigurationError: If file cannot be loaded.
    """
    if path is None:
        path = DEFAULT_CONFIG_DIR / "config.yaml"

    path = Path(path).expanduser()

    if not path.exists():
        return {}

    return load_yaml_file(path)


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs override earlier ones.
    """
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def create_settings(
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Create a Settings instance with layered configuration.

    Args:
        system_config_path: Optional path to system config file.
        runtime_overrides: Optional runtime overrides dictionary.

    Returns:
        Configured Settings instance.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    if system_config_path:
        config_base = Path(system_config_path).expanduser().parent
    else:
        config_base = DEFAULT_CONFIG_DIR

    env_path = config_base / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    merged = load_system_config(system_config_path)
    if runtime_overrides:
        merged = merge_configs(merged, runtime_overrides)

    try:
        return Settings(**merged)
    except Exception as e:
        raise ConfigurationError(
            config_path=str(system_config_path or DEFAULT_CONFIG_DIR / "config.yaml"),
            message=f"Configuration validation failed: {e}",
        ) from e


# =============================================================================
# Singleton Settings Access
# =============================================================================


class _SettingsHolder:
    """Thread-safe singleton holder for Settings instance."""

    _instance: Optional[Settings] = None
    _lock: threading.Lock = threading.Lock()

    @classmethod
    def get(cls, force_reload: bool = False, **kwargs: Any) -> Settings:
        """Get or create the Settings singleton."""
        if cls._instance is None or force_reload:
            with cls._lock:
                if cls._instance is None or force_reload:
                    cls._instance = create_settings(**kwargs)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        with cls._lock:
            cls._instance = None


def get_settings(
    force_reload: bool = False,
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Get the global Settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Args:
        force_reload: If True, reload settings from files.
        system_config_path: Optional path to system config file.
        runtime_overrides: Optional runtime overrides.

    Returns:
        Settings instance.
    """
    if not force_reload and _SettingsHolder._instance is not None:
        if system_config_path is not None or runtime_overrides is not None:
            warnings.warn(
                "Arguments provided to get_settings() are ignored because "
                "singleton is already initialized. Use force_reload=True "
                "to apply new configuration.",
                RuntimeWarning,
                stacklevel=2,
            )

    return _SettingsHolder.get(
        force_reload=force_reload,
        system_config_path=system_config_path,
        runtime_overrides=runtime_overrides,
    )


def reset_settings() -> None:
    """Reset the settings singleton (for testing)."""
    _SettingsHolder.reset()
