"""Exceptions raised by temp_env_vars.

Everything the package raises on purpose derives from ``TempEnvError``
so callers can catch the whole family in one clause.  Failures of the
underlying process environment (``os.environ``) are not wrapped; they
propagate unchanged.
"""


class TempEnvError(Exception):
    """Base class for all temp_env_vars errors."""


class ScopeReleasedError(TempEnvError):
    """Raised when a released scope is released again or re-entered."""


class DecoratorOrderError(TempEnvError):
    """Raised at decoration time when decorators are stacked in the wrong order.

    The serial mark must be applied *after* ``@temp_env_vars``, i.e.
    written above it::

        @pytest.mark.serial
        @temp_env_vars
        def test_something() -> None: ...

    """


class ConfigError(TempEnvError, ValueError):
    """Raised when a setting has an invalid value."""
