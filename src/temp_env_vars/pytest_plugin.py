"""pytest integration, loaded automatically through the ``pytest11`` entry point.

Two ways to protect a test without writing ``@temp_env_vars``:

- the ``temp_env`` fixture, which yields the active ``TempEnvScope``::

      def test_home(temp_env: TempEnvScope) -> None:
          os.environ["HOME"] = "/tmp/fake"

- the ``temp_env_vars`` marker, which guards the test call::

      @pytest.mark.temp_env_vars
      def test_home() -> None: ...

Both hold the shared mutex, so they serialize with decorated functions
too.  Combining them with each other or with the decorator is safe: the
lock is never held twice at the same time by one test.
"""

from collections.abc import Generator, Iterator

import pytest

from temp_env_vars.decorator import is_wrapped
from temp_env_vars.lock import shared_mutex
from temp_env_vars.scope import TempEnvScope

MARKER_NAME = "temp_env_vars"
FIXTURE_NAME = "temp_env"


def pytest_configure(config: pytest.Config) -> None:
    """Register the marker so ``--strict-markers`` accepts it."""
    config.addinivalue_line(
        "markers",
        f"{MARKER_NAME}: restore environment variables after the test and serialize it "
        "with other protected tests",
    )


@pytest.fixture
def temp_env(request: pytest.FixtureRequest) -> Iterator[TempEnvScope]:
    """Yield a scope that restores the environment after the test."""
    if is_wrapped(request.function):
        # The decorator locks the call, so lock only snapshot and restore here.
        with shared_mutex().hold():
            scope = TempEnvScope()
        yield scope
        with shared_mutex().hold():
            if not scope.released:
                scope.release()
        return
    with shared_mutex().hold(), TempEnvScope() as scope:
        yield scope


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_call(item: pytest.Item) -> Generator[None]:
    """Guard the call of tests carrying the ``temp_env_vars`` marker."""
    guarded = (
        item.get_closest_marker(MARKER_NAME) is not None
        and not is_wrapped(getattr(item, "obj", None))
        and FIXTURE_NAME not in getattr(item, "fixturenames", ())
    )
    if not guarded:
        yield
        return
    with shared_mutex().hold(), TempEnvScope():
        yield
