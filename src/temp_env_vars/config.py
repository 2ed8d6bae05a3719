"""Settings: how strictly misuse is treated and how much gets logged.

Two kinds of misuse are policed, each with three enforcement modes:

    - **strict**: raise (the default; mistakes surface immediately).
    - **warn**: record a WARNING in the event log and carry on.
    - **off**: no checking at all.

``ReleaseMode`` governs releasing a scope that was already released.
``OrderMode`` governs stacking a serial mark underneath
``@temp_env_vars`` instead of above it.

Settings are read once from ``TEMP_ENV_VARS_*`` variables on first use
and cached.  Tests that want different settings call ``configure``
rather than touching the variables, since a cached value never
re-reads the environment.
"""

import threading
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from temp_env_vars.exceptions import ConfigError
from temp_env_vars.logging import DEFAULT_MAX_ENTRIES, LogLevel, get_logger

ENV_PREFIX = "TEMP_ENV_VARS_"
RELEASE_MODE_VAR = f"{ENV_PREFIX}RELEASE_MODE"
ORDER_MODE_VAR = f"{ENV_PREFIX}ORDER_MODE"
LOG_LEVEL_VAR = f"{ENV_PREFIX}LOG_LEVEL"
MAX_LOG_ENTRIES_VAR = f"{ENV_PREFIX}MAX_LOG_ENTRIES"


class ReleaseMode(StrEnum):
    """What happens when an already released scope is released again."""

    STRICT = "strict"
    WARN = "warn"
    OFF = "off"


class OrderMode(StrEnum):
    """What happens when a serial mark sits underneath ``@temp_env_vars``."""

    STRICT = "strict"
    WARN = "warn"
    OFF = "off"


class Settings(BaseSettings):
    """Package configuration, read from ``TEMP_ENV_VARS_*`` variables.

    Attributes:
        release_mode: Policy for double release of a scope.
        order_mode: Policy for misordered decorators.
        log_level: Lowest level recorded by the default logger.
        max_log_entries: Number of newest entries the default logger keeps.

    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, frozen=True)

    release_mode: ReleaseMode = Field(
        default=ReleaseMode.STRICT,
        description="Policy for releasing an already released scope.")

    order_mode: OrderMode = Field(
        default=OrderMode.STRICT,
        description="Policy for a serial mark applied before the decorator.")

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Lowest level recorded by the default logger.")

    max_log_entries: int = Field(
        default=DEFAULT_MAX_ENTRIES,
        gt=0,
        description="Number of newest entries the default logger keeps.")

    @field_validator("release_mode", "order_mode", mode="before")
    @classmethod
    def lower_mode(cls, value: Any) -> Any:
        """Accept mode names in any case."""
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def level_by_name(cls, value: Any) -> Any:
        """Accept level names such as ``debug`` or ``WARNING``."""
        if isinstance(value, str):
            name = value.strip().upper()
            if name not in LogLevel.__members__:
                msg = f"expected one of: {', '.join(LogLevel.__members__)}"
                raise ValueError(msg)
            return LogLevel[name]
        return value

    @field_validator("max_log_entries", mode="before")
    @classmethod
    def reject_bool(cls, value: Any) -> Any:
        """Refuse booleans, which would otherwise pass as 0 or 1."""
        if isinstance(value, bool):
            msg = "expected a positive integer, not a boolean"
            raise ValueError(msg)
        return value

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``TEMP_ENV_VARS_*`` variables.

        Args:
            environ: Mapping to read from; the process environment when
                omitted.

        Returns:
            Settings with unset variables left at their defaults.

        Raises:
            ConfigError: If a variable holds an invalid value.

        """
        try:
            if environ is None:
                return cls()
            values = {
                name[len(ENV_PREFIX):].lower(): value
                for name, value in environ.items()
                if name.upper().startswith(ENV_PREFIX)
                and name[len(ENV_PREFIX):].lower() in cls.model_fields
            }
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc


_settings: Settings | None = None
_settings_lock = threading.Lock()


def _apply(settings: Settings) -> None:
    logger = get_logger()
    logger.min_level = settings.log_level
    logger.max_entries = settings.max_log_entries


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment once."""
    global _settings  # noqa: PLW0603
    with _settings_lock:
        if _settings is None:
            _settings = Settings.from_environ()
            _apply(_settings)
        return _settings


def configure(**overrides: Any) -> Settings:
    """Replace selected fields of the active settings.

    Args:
        **overrides: Field names of ``Settings`` and their new values.

    Returns:
        The new active settings.

    Raises:
        ConfigError: If a field name is unknown or a value is invalid.

    """
    global _settings  # noqa: PLW0603
    unknown = sorted(set(overrides) - set(Settings.model_fields))
    if unknown:
        msg = f"Unknown setting(s): {', '.join(unknown)}"
        raise ConfigError(msg)
    current = get_settings()
    try:
        updated = Settings.model_validate({**current.model_dump(), **overrides})
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
    with _settings_lock:
        _settings = updated
        _apply(updated)
    return updated


def reset_settings() -> None:
    """Forget the active settings so the next access re-reads the environment."""
    global _settings  # noqa: PLW0603
    with _settings_lock:
        _settings = None
