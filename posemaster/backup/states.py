from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class BackupState(StrEnum):
    IDLE = "idle"
    EXPORTING = "exporting"
    ARCHIVING = "archiving"
    NOTIFYING = "notifying"


class BackupStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class BackupOutcome:
    """Result of one ``run_backup`` call.

    ``failed_step`` and ``reason`` are set only for FAILED outcomes;
    ``bundle_key`` only for SUCCESS.
    """

    status: BackupStatus
    completed_at: datetime
    trigger: str
    bundle_key: str | None = None
    failed_step: BackupState | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is BackupStatus.SUCCESS
