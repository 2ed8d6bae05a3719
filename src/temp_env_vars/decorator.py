"""``@temp_env_vars``: run a function as a protected section.

Decorating a function makes every call:

    1. acquire the shared mutex,
    2. create a ``TempEnvScope``,
    3. run the original function,
    4. release the scope (restoring the environment),
    5. release the mutex,

with steps 4 and 5 running on every exit path, including exceptions.
Because all decorated functions share one mutex, decorated tests never
overlap, even under a parallel runner::

    @temp_env_vars
    def test_reads_home() -> None:
        os.environ["HOME"] = "/tmp/fake"
        ...

Coroutine functions are supported; the mutex is awaited without
blocking the event loop.  The wrapper keeps the original's name,
docstring, and signature, so pytest still injects fixtures.

A serial mark has to be applied *after* this decorator (written above
it).  A function that already carries one when ``@temp_env_vars`` sees
it is rejected at decoration time, according to ``Settings.order_mode``.
"""

import functools
import inspect
from collections.abc import Callable
from typing import Any, overload

from temp_env_vars.config import OrderMode, get_settings
from temp_env_vars.exceptions import DecoratorOrderError
from temp_env_vars.lock import SharedMutex, shared_mutex
from temp_env_vars.logging import Logger, get_logger
from temp_env_vars.scope import TempEnvScope

_SOURCE = "decorator"

SERIAL_MARK_NAME = "serial"

# Set on every wrapper so other integrations can tell it is already guarded.
WRAPPED_FLAG = "__temp_env_vars__"


def is_wrapped(func: Callable[..., Any]) -> bool:
    """Return True if *func* was produced by ``@temp_env_vars``."""
    return bool(getattr(func, WRAPPED_FLAG, False))


def _has_serial_mark(func: Callable[..., Any]) -> bool:
    marks = getattr(func, "pytestmark", [])
    return any(getattr(mark, "name", None) == SERIAL_MARK_NAME for mark in marks)


def _check_order(func: Callable[..., Any], mode: OrderMode, logger: Logger) -> None:
    if mode is OrderMode.OFF or not _has_serial_mark(func):
        return
    msg = f"Apply the '{SERIAL_MARK_NAME}' mark after '@temp_env_vars' on {func.__qualname__}"
    if mode is OrderMode.STRICT:
        raise DecoratorOrderError(msg)
    logger.warning(msg, source=_SOURCE)


def _wrap[F: Callable[..., Any]](func: F, mutex: SharedMutex | None, logger: Logger | None) -> F:
    if not callable(func):
        msg = f"@temp_env_vars can only decorate callables, got {type(func).__name__}"
        raise TypeError(msg)
    if inspect.isgeneratorfunction(func) or inspect.isasyncgenfunction(func):
        msg = f"@temp_env_vars cannot decorate generator function {func.__qualname__}"
        raise TypeError(msg)

    if is_wrapped(func):
        return func

    log = logger if logger is not None else get_logger()
    _check_order(func, get_settings().order_mode, log)

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            lock = mutex if mutex is not None else shared_mutex()
            async with lock.hold_async():
                with TempEnvScope(logger=log):
                    return await func(*args, **kwargs)

        setattr(async_wrapper, WRAPPED_FLAG, True)
        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        lock = mutex if mutex is not None else shared_mutex()
        with lock.hold(), TempEnvScope(logger=log):
            return func(*args, **kwargs)

    setattr(wrapper, WRAPPED_FLAG, True)
    return wrapper  # type: ignore[return-value]


@overload
def temp_env_vars[F: Callable[..., Any]](func: F, /) -> F: ...


@overload
def temp_env_vars[F: Callable[..., Any]](
    *,
    mutex: SharedMutex | None = None,
    logger: Logger | None = None,
) -> Callable[[F], F]: ...


def temp_env_vars(
    func: Callable[..., Any] | None = None,
    /,
    *,
    mutex: SharedMutex | None = None,
    logger: Logger | None = None,
) -> Any:
    """Undo a function's environment changes and serialize it with its peers.

    Use bare (``@temp_env_vars``) or called (``@temp_env_vars()``).

    Args:
        func: The function to wrap (bare form).
        mutex: Lock to serialize on; the process-wide ``shared_mutex()``
            when omitted.  Passing a separate mutex opts out of
            serialization with everything else.
        logger: Event log; the default logger when omitted.

    Returns:
        The wrapped function, or a decorator in the called form.

    Raises:
        TypeError: If *func* is not callable or is a generator function.
        DecoratorOrderError: If *func* already carries a serial mark and
            the order mode is ``strict``.

    """
    if func is None:
        return lambda f: _wrap(f, mutex, logger)
    return _wrap(func, mutex, logger)
