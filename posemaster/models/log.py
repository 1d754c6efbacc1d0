from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class LogLevel(StrEnum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class LogModule(StrEnum):
    GATEWAY = "gateway"
    SCHEDULER = "scheduler"
    STORE = "store"
    NOTIFIER = "notifier"


@dataclass(frozen=True)
class LogEntry:
    """One operational event. Append-only."""

    id: int
    timestamp: datetime
    level: LogLevel
    module: LogModule
    message: str
