"""Tests for the shared mutex.

Every protected section in the process takes the same lock, so at most
one of them runs at a time.  The lock must survive a section that
raises, and async sections must wait for it without blocking the loop.
"""

import asyncio
import threading
import time

import pytest

from temp_env_vars.lock import SHARED_MUTEX_NAME, SharedMutex, shared_mutex
from temp_env_vars.logging import Logger, LogLevel

SHORT_TIMEOUT = 0.05
JOIN_TIMEOUT = 5.0
THREAD_COUNT = 8
INCREMENTS = 200


class TestSharedMutex:
    """Verify acquire, release, and owner tracking."""

    def test_create_unlocked(self) -> None:
        """A new mutex should be unlocked with no owner."""
        mutex = SharedMutex(name="m")
        assert mutex.name == "m"
        assert not mutex.is_locked
        assert mutex.owner is None
        assert mutex.wait_queue_size == 0

    def test_acquire_and_release(self) -> None:
        """Acquire should lock and record the owner; release should clear both."""
        mutex = SharedMutex(name="m")
        assert mutex.acquire()
        assert mutex.is_locked
        assert mutex.owner == threading.current_thread().name
        mutex.release()
        assert not mutex.is_locked
        assert mutex.owner is None

    def test_release_unlocked_raises(self) -> None:
        """Releasing an unlocked mutex should raise ValueError."""
        mutex = SharedMutex(name="m")
        with pytest.raises(ValueError, match="not locked"):
            mutex.release()

    def test_acquire_timeout(self) -> None:
        """A timed acquire on a held mutex should give up and return False."""
        logger = Logger()
        mutex = SharedMutex(name="m", logger=logger)
        mutex.acquire()
        try:
            assert not mutex.acquire(timeout=SHORT_TIMEOUT)
        finally:
            mutex.release()
        assert len(logger.filter(min_level=LogLevel.WARNING)) == 1

    def test_hold_releases_on_exception(self) -> None:
        """An exception inside hold() should not leave the mutex locked."""
        mutex = SharedMutex(name="m")
        msg = "boom"
        with pytest.raises(RuntimeError, match=msg), mutex.hold():
            raise RuntimeError(msg)
        assert not mutex.is_locked

    def test_repr(self) -> None:
        """repr should show the lock state."""
        mutex = SharedMutex(name="m")
        assert repr(mutex) == "SharedMutex('m', unlocked)"
        with mutex.hold():
            assert "locked by" in repr(mutex)


class TestMutualExclusion:
    """Verify that hold() serializes threads."""

    def test_counter_is_consistent(self) -> None:
        """A non-atomic read-modify-write under the mutex should never lose updates."""
        mutex = SharedMutex(name="m")
        counter = {"value": 0}

        def work() -> None:
            for _ in range(INCREMENTS):
                with mutex.hold():
                    current = counter["value"]
                    time.sleep(0)
                    counter["value"] = current + 1

        threads = [threading.Thread(target=work) for _ in range(THREAD_COUNT)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(JOIN_TIMEOUT)
        assert counter["value"] == THREAD_COUNT * INCREMENTS

    def test_waiter_is_counted(self) -> None:
        """A thread blocked in acquire should show up in the wait queue."""
        mutex = SharedMutex(name="m")
        mutex.acquire()
        waiter = threading.Thread(target=mutex.acquire)
        waiter.start()
        deadline = time.monotonic() + JOIN_TIMEOUT
        while mutex.wait_queue_size == 0 and time.monotonic() < deadline:
            time.sleep(0.001)
        assert mutex.wait_queue_size == 1
        mutex.release()
        waiter.join(JOIN_TIMEOUT)
        assert mutex.wait_queue_size == 0
        assert mutex.is_locked
        mutex.release()


class TestHoldAsync:
    """Verify the async context manager."""

    @pytest.mark.asyncio
    async def test_hold_async(self) -> None:
        """hold_async should lock for the block and unlock afterwards."""
        mutex = SharedMutex(name="m")
        async with mutex.hold_async():
            assert mutex.is_locked
        assert not mutex.is_locked

    @pytest.mark.asyncio
    async def test_waiting_does_not_block_loop(self) -> None:
        """While one task waits for the lock, other tasks keep running."""
        mutex = SharedMutex(name="m")
        mutex.acquire()
        ticks = 0

        async def waiter() -> None:
            async with mutex.hold_async():
                pass

        task = asyncio.create_task(waiter())
        for _ in range(3):
            await asyncio.sleep(0)
            ticks += 1
        assert not task.done()
        mutex.release()
        await asyncio.wait_for(task, JOIN_TIMEOUT)
        assert ticks == 3
        assert not mutex.is_locked

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_leak_lock(self) -> None:
        """Cancelling a waiting task should not leave the mutex held."""
        mutex = SharedMutex(name="m")
        mutex.acquire()

        async def waiter() -> None:
            async with mutex.hold_async():
                pass

        task = asyncio.create_task(waiter())
        await asyncio.sleep(SHORT_TIMEOUT)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        mutex.release()

        deadline = time.monotonic() + JOIN_TIMEOUT
        while mutex.is_locked and time.monotonic() < deadline:
            await asyncio.sleep(0.01)
        assert not mutex.is_locked


class TestSharedInstance:
    """Verify the process-wide singleton."""

    def test_same_instance(self) -> None:
        """Every call should return the same mutex."""
        assert shared_mutex() is shared_mutex()

    def test_name(self) -> None:
        """The shared mutex should carry the package name."""
        assert shared_mutex().name == SHARED_MUTEX_NAME

    def test_lazy_init_is_thread_safe(self) -> None:
        """Concurrent first calls should still agree on one instance."""
        seen: list[SharedMutex] = []
        barrier = threading.Barrier(THREAD_COUNT)

        def grab() -> None:
            barrier.wait()
            seen.append(shared_mutex())

        threads = [threading.Thread(target=grab) for _ in range(THREAD_COUNT)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(JOIN_TIMEOUT)
        assert len({id(m) for m in seen}) == 1
