"""The process environment: the one piece of state every scope touches.

Every process has an environment: a set of ``KEY=VALUE`` string pairs
inherited from its parent.  Unlike the rest of a program's state it is
shared by *all* threads, so a test that sets ``FOO`` is visible to every
other test running at the same moment.

Key properties this module relies on:
    - **Strings only**: both names and values are strings.
    - **Process-wide**: there is no per-thread copy, which is why
      protected sections need the shared mutex.
    - **Writes reach the OS**: going through ``os.environ`` calls
      ``putenv``/``unsetenv``, so child processes see the same table.

``ProcessEnvironment`` wraps ``os.environ`` with the handful of
operations a scope needs: snapshot, set, remove.  ``diff`` compares
two snapshots.
"""

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass

type EnvironmentTable = dict[str, str]


@dataclass(frozen=True)
class EnvDiff:
    """The difference between two environment tables.

    Attributes:
        added: Names present only in the later table.
        removed: Names present only in the earlier table.
        changed: Names present in both with different values.

    """

    added: frozenset[str] = frozenset()
    removed: frozenset[str] = frozenset()
    changed: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        """Return True if the two tables were identical."""
        return not (self.added or self.removed or self.changed)

    def __str__(self) -> str:
        """Summarise as ``+added ~changed -removed`` counts."""
        return f"+{len(self.added)} ~{len(self.changed)} -{len(self.removed)}"


def diff(before: Mapping[str, str], after: Mapping[str, str]) -> EnvDiff:
    """Return how *after* differs from *before*."""
    before_keys = before.keys()
    after_keys = after.keys()
    return EnvDiff(
        added=frozenset(after_keys - before_keys),
        removed=frozenset(before_keys - after_keys),
        changed=frozenset(k for k in before_keys & after_keys if before[k] != after[k]),
    )


class ProcessEnvironment:
    """Read and write access to the process environment.

    By default this wraps ``os.environ``.  Any other mutable mapping can
    be passed in, which keeps the scope logic testable without touching
    the real environment.
    """

    def __init__(self, environ: MutableMapping[str, str] | None = None) -> None:
        """Wrap *environ*, or ``os.environ`` when omitted."""
        self._environ: MutableMapping[str, str] = os.environ if environ is None else environ

    def snapshot(self) -> EnvironmentTable:
        """Return an independent copy of every name/value pair."""
        return dict(self._environ)

    def set(self, name: str, value: str) -> None:
        """Set *name* to *value* (creates or overwrites)."""
        self._environ[name] = value

    def remove(self, name: str) -> None:
        """Remove *name*; removing an unset name does nothing."""
        self._environ.pop(name, None)
