"""TempEnvScope: undo every environment change made while it is active.

A scope takes a snapshot of the whole environment when it is created.
When it is released, it compares the environment *now* with that
snapshot and applies the inverse:

    1. Names that exist now but not in the snapshot were added during
       the scope, so remove them.
    2. Every name in the snapshot is set back to its snapshot value.
       This restores deleted names and overwrites changed ones in a
       single pass.

Afterwards the environment holds exactly the snapshot, no matter how
many additions, deletions, or modifications happened in between.

Release happens on leaving a ``with`` block (including by exception)
or by calling ``release()`` directly::

    with TempEnvScope():
        os.environ["FOO"] = "BAR"
    # FOO is back to whatever it was before

    scope = TempEnvScope()
    os.environ["FOO"] = "BAR"
    scope.release()

A scope does **not** lock anything.  Two threads mutating the
environment while one of them holds a scope will confuse it; hold the
shared mutex (``shared_mutex().hold()``) or use ``@temp_env_vars`` for
that.
"""

from collections.abc import Mapping
from types import MappingProxyType, TracebackType

from temp_env_vars.config import ReleaseMode, get_settings
from temp_env_vars.environment import EnvDiff, ProcessEnvironment, diff
from temp_env_vars.exceptions import ScopeReleasedError
from temp_env_vars.logging import Logger, get_logger

_SOURCE = "scope"


class TempEnvScope:
    """Snapshot of the environment that restores itself on release.

    Nested scopes are independent: each restores to its own snapshot,
    which includes whatever outer scopes had changed by the time it was
    created.
    """

    def __init__(
        self,
        *,
        environment: ProcessEnvironment | None = None,
        logger: Logger | None = None,
        release_mode: ReleaseMode | None = None,
    ) -> None:
        """Snapshot the current environment.

        Args:
            environment: Environment to guard; the process environment
                when omitted.
            logger: Event log; the default logger when omitted.
            release_mode: Double-release policy; the configured
                ``Settings.release_mode`` when omitted.

        """
        self._environment = environment if environment is not None else ProcessEnvironment()
        self._logger = logger if logger is not None else get_logger()
        self._release_mode = release_mode if release_mode is not None else get_settings().release_mode
        self._original_vars = self._environment.snapshot()
        self._released = False
        self._logger.debug(f"snapshot of {len(self._original_vars)} variables taken", source=_SOURCE)

    @property
    def original_vars(self) -> Mapping[str, str]:
        """Return a read-only view of the snapshot."""
        return MappingProxyType(self._original_vars)

    @property
    def released(self) -> bool:
        """Return whether the scope has already restored the environment."""
        return self._released

    def changes(self) -> EnvDiff:
        """Return how the environment currently differs from the snapshot."""
        return diff(self._original_vars, self._environment.snapshot())

    def release(self) -> EnvDiff:
        """Restore the environment to the snapshot.

        Returns:
            The changes that were undone.

        Raises:
            ScopeReleasedError: If the scope was already released and the
                release mode is ``strict``.

        """
        if self._released:
            return self._release_again()
        self._released = True

        after = self._environment.snapshot()
        undone = diff(self._original_vars, after)
        for name in after.keys() - self._original_vars.keys():
            self._environment.remove(name)
        for name, value in self._original_vars.items():
            self._environment.set(name, value)

        if undone.is_empty:
            self._logger.debug("released, nothing to restore", source=_SOURCE)
        else:
            self._logger.info(f"released, restored {undone}", source=_SOURCE)
        return undone

    def _release_again(self) -> EnvDiff:
        if self._release_mode is ReleaseMode.STRICT:
            msg = "TempEnvScope was already released"
            raise ScopeReleasedError(msg)
        if self._release_mode is ReleaseMode.WARN:
            self._logger.warning("release called on an already released scope", source=_SOURCE)
        return EnvDiff()

    def __enter__(self) -> "TempEnvScope":
        """Return the scope itself.

        Raises:
            ScopeReleasedError: If the scope was already released.

        """
        if self._released:
            msg = "Cannot re-enter a released TempEnvScope"
            raise ScopeReleasedError(msg)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Restore the environment unless ``release()`` already did."""
        if not self._released:
            self.release()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        state = "released" if self._released else "active"
        return f"TempEnvScope({len(self._original_vars)} variables, {state})"
