"""Append-only operational event log.

Every component reports its state transitions here.  Entries are kept
in process memory (they are operational, not canonical data) and are
mirrored to the stdlib ``posemaster.events`` logger so they also reach
whatever handlers the host application configured.
"""

from __future__ import annotations

import itertools
import logging
from collections import deque

from posemaster.models.log import LogEntry, LogLevel, LogModule
from posemaster.models.utils import utcnow

logger = logging.getLogger("posemaster.events")

_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class LogSink:
    """In-memory, strictly ordered event log.

    ``append`` is synchronous and never awaits, so within one event loop
    entry ids follow call order exactly.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._ids = itertools.count(1)

    def append(self, level: LogLevel, module: LogModule, message: str) -> LogEntry:
        entry = LogEntry(
            id=next(self._ids),
            timestamp=utcnow(),
            level=LogLevel(level),
            module=LogModule(module),
            message=message,
        )
        self._entries.append(entry)
        logger.log(
            _STDLIB_LEVELS[entry.level],
            "[%s] %s: %s",
            entry.module.value,
            entry.level.value,
            message,
        )
        return entry

    def info(self, module: LogModule, message: str) -> LogEntry:
        return self.append(LogLevel.INFO, module, message)

    def warn(self, module: LogModule, message: str) -> LogEntry:
        return self.append(LogLevel.WARN, module, message)

    def error(self, module: LogModule, message: str) -> LogEntry:
        return self.append(LogLevel.ERROR, module, message)

    def success(self, module: LogModule, message: str) -> LogEntry:
        return self.append(LogLevel.SUCCESS, module, message)

    def recent(self, n: int = 50) -> list[LogEntry]:
        """Return up to *n* entries, newest first."""
        if n <= 0:
            return []
        return list(itertools.islice(reversed(self._entries), n))

    def entries(self) -> list[LogEntry]:
        """Return the retained history, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
