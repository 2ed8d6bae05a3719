"""Shared fixtures: every test starts from default settings and an empty log."""

from collections.abc import Iterator

import pytest

from temp_env_vars.config import get_settings, reset_settings
from temp_env_vars.logging import get_logger


@pytest.fixture(autouse=True)
def _default_settings() -> Iterator[None]:
    """Reload settings and clear the default log around each test."""
    reset_settings()
    get_settings()
    get_logger().clear()
    yield
    reset_settings()
    get_settings()
    get_logger().clear()
