"""SharedMutex: one lock for every protected section in the process.

The environment is process-wide, so two tests that each take a scope
and then mutate ``FOO`` can still trample each other if they run on
different threads at the same time.  The cure is blunt: every protected
section takes the *same* lock before creating its scope and keeps it
until the scope has restored the environment.  At most one protected
section runs at a time.

Rules of use:
    - Acquire **before** creating the scope, release **after** it has
      been released.
    - Waiting is unbounded unless a timeout is passed to ``acquire``.
    - The lock is not re-entrant.  A protected section that calls
      another protected section on the same thread deadlocks.
    - A section that raises still releases the lock (``hold`` uses
      ``finally``), so one failing test never blocks the rest.

``shared_mutex()`` creates the lock on first use and returns the same
instance for the life of the process.
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

from temp_env_vars.logging import Logger, get_logger

_SOURCE = "lock"


class SharedMutex:
    """Mutual exclusion lock for protected sections.

    Wraps a ``threading.Lock`` and records who holds it and how many
    threads are queued.  A plain lock (not an ``RLock``) is used because
    async sections wait for it in a worker thread and release it from
    the event loop thread.
    """

    def __init__(self, *, name: str, logger: Logger | None = None) -> None:
        """Create an unlocked mutex with the given name."""
        self._name = name
        self._logger = logger if logger is not None else get_logger()
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._owner: str | None = None
        self._waiting = 0

    @property
    def name(self) -> str:
        """Return the mutex name."""
        return self._name

    @property
    def is_locked(self) -> bool:
        """Return whether the mutex is currently held."""
        return self._lock.locked()

    @property
    def owner(self) -> str | None:
        """Return the name of the thread that acquired the mutex, or None."""
        return self._owner

    @property
    def wait_queue_size(self) -> int:
        """Return the number of threads blocked in ``acquire``."""
        return self._waiting

    def acquire(self, *, timeout: float | None = None) -> bool:
        """Block until the mutex is free, then take it.

        Args:
            timeout: Seconds to wait before giving up; wait forever when
                None.

        Returns:
            True if acquired, False if *timeout* expired first.

        """
        if self._lock.acquire(blocking=False):
            self._mark_acquired()
            return True

        self._logger.debug(f"waiting for '{self._name}' held by {self._owner}", source=_SOURCE)
        with self._state_lock:
            self._waiting += 1
        try:
            acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        finally:
            with self._state_lock:
                self._waiting -= 1

        if acquired:
            self._mark_acquired()
        else:
            self._logger.warning(f"gave up waiting for '{self._name}' after {timeout}s", source=_SOURCE)
        return acquired

    def _mark_acquired(self) -> None:
        self._owner = threading.current_thread().name
        self._logger.debug(f"'{self._name}' acquired", source=_SOURCE)

    def release(self) -> None:
        """Release the mutex, waking the next waiter if any.

        Raises:
            ValueError: If the mutex is not locked.

        """
        if not self._lock.locked():
            msg = f"Mutex '{self._name}' is not locked"
            raise ValueError(msg)
        self._owner = None
        self._lock.release()
        self._logger.debug(f"'{self._name}' released", source=_SOURCE)

    @contextmanager
    def hold(self) -> Iterator["SharedMutex"]:
        """Hold the mutex for the duration of a ``with`` block."""
        self.acquire()
        try:
            yield self
        finally:
            self.release()

    @asynccontextmanager
    async def hold_async(self) -> AsyncIterator["SharedMutex"]:
        """Hold the mutex for the duration of an ``async with`` block.

        The blocking wait runs in a worker thread so the event loop keeps
        serving other tasks.  If the waiting task is cancelled, the lock
        is released as soon as the worker thread obtains it.
        """
        waiter = asyncio.ensure_future(asyncio.to_thread(self.acquire))
        try:
            await asyncio.shield(waiter)
        except asyncio.CancelledError:
            waiter.add_done_callback(self._release_abandoned)
            raise
        try:
            yield self
        finally:
            self.release()

    def _release_abandoned(self, waiter: "asyncio.Future[bool]") -> None:
        if not waiter.cancelled() and waiter.exception() is None and waiter.result():
            self.release()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        state = f"locked by {self._owner}" if self.is_locked else "unlocked"
        return f"SharedMutex('{self._name}', {state})"


SHARED_MUTEX_NAME = "temp_env_vars"

_shared: SharedMutex | None = None
_shared_init_lock = threading.Lock()


def shared_mutex() -> SharedMutex:
    """Return the process-wide mutex, creating it on first call."""
    global _shared  # noqa: PLW0603
    if _shared is None:
        with _shared_init_lock:
            if _shared is None:
                _shared = SharedMutex(name=SHARED_MUTEX_NAME)
    return _shared
