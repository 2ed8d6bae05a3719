"""Event log for environment scopes and the shared lock.

Every scope and every protected section leaves a short audit trail:
when a snapshot was taken, what a release undid, who waited for the
lock.  When a test leaks state or hangs on the lock, the trail shows
which thread was doing what.

- **LogLevel**: severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry**: a single structured record (level, message, source, thread).
- **Logger**: a bounded append-only log with filtering and clearing.

The log is in memory only.  Entries below ``min_level`` are dropped on
arrival, and only the newest ``max_entries`` are kept so a long test
session cannot grow it without limit.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum

DEFAULT_MAX_ENTRIES = 1000


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


def _current_thread_name() -> str:
    return threading.current_thread().name


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The component that generated the event (``"scope"``,
            ``"lock"``, ``"decorator"``).
        thread: Name of the thread that recorded the event.

    """

    level: LogLevel
    message: str
    source: str
    thread: str = field(default_factory=_current_thread_name)

    def __str__(self) -> str:
        """Format as ``[LEVEL] source (thread): message``."""
        return f"[{self.level.name}] {self.source} ({self.thread}): {self.message}"


class Logger:
    """Bounded, thread-safe log buffer with filtering.

    Scopes are released from many threads at once when tests run in
    parallel, so appends and reads go through an internal lock.
    """

    def __init__(
        self,
        *,
        min_level: LogLevel = LogLevel.INFO,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        """Create an empty logger.

        Args:
            min_level: Entries below this level are discarded.
            max_entries: Number of newest entries to keep.

        Raises:
            ValueError: If *max_entries* is not positive.

        """
        if max_entries < 1:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self._min_level = min_level
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def min_level(self) -> LogLevel:
        """Return the lowest level that is recorded."""
        return self._min_level

    @min_level.setter
    def min_level(self, value: LogLevel) -> None:
        """Set the lowest level that is recorded."""
        self._min_level = value

    @property
    def max_entries(self) -> int:
        """Return how many entries the buffer keeps."""
        maxlen = self._entries.maxlen
        return maxlen if maxlen is not None else DEFAULT_MAX_ENTRIES

    @max_entries.setter
    def max_entries(self, value: int) -> None:
        """Resize the buffer, keeping the newest entries."""
        if value < 1:
            msg = f"max_entries must be positive, got {value}"
            raise ValueError(msg)
        with self._lock:
            self._entries = deque(self._entries, maxlen=value)

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        with self._lock:
            return list(self._entries)

    def log(self, level: LogLevel, message: str, *, source: str) -> None:
        """Append a new entry unless *level* is below ``min_level``.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.

        """
        if level < self._min_level:
            return
        entry = LogEntry(level=level, message=message, source=source)
        with self._lock:
            self._entries.append(entry)

    def debug(self, message: str, *, source: str) -> None:
        """Record a DEBUG entry."""
        self.log(LogLevel.DEBUG, message, source=source)

    def info(self, message: str, *, source: str) -> None:
        """Record an INFO entry."""
        self.log(LogLevel.INFO, message, source=source)

    def warning(self, message: str, *, source: str) -> None:
        """Record a WARNING entry."""
        self.log(LogLevel.WARNING, message, source=source)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A filtered list of log entries.

        """
        result = self.entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        """Return the number of stored entries."""
        with self._lock:
            return len(self._entries)


_default_logger = Logger()


def get_logger() -> Logger:
    """Return the process-wide default logger."""
    return _default_logger
