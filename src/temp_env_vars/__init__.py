"""Temporary environment variables for tests.

Re-exports public symbols so callers can write::

    from temp_env_vars import TempEnvScope, temp_env_vars
"""

from temp_env_vars.config import (
    OrderMode,
    ReleaseMode,
    Settings,
    configure,
    get_settings,
    reset_settings,
)
from temp_env_vars.decorator import temp_env_vars
from temp_env_vars.environment import EnvDiff, ProcessEnvironment
from temp_env_vars.exceptions import (
    ConfigError,
    DecoratorOrderError,
    ScopeReleasedError,
    TempEnvError,
)
from temp_env_vars.lock import SharedMutex, shared_mutex
from temp_env_vars.logging import LogEntry, Logger, LogLevel, get_logger
from temp_env_vars.scope import TempEnvScope

__all__ = [
    "ConfigError",
    "DecoratorOrderError",
    "EnvDiff",
    "LogEntry",
    "LogLevel",
    "Logger",
    "OrderMode",
    "ProcessEnvironment",
    "ReleaseMode",
    "ScopeReleasedError",
    "SharedMutex",
    "Settings",
    "TempEnvError",
    "TempEnvScope",
    "configure",
    "get_logger",
    "get_settings",
    "reset_settings",
    "shared_mutex",
    "temp_env_vars",
]
