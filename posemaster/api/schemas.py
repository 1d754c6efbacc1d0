from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from posemaster.backup.states import BackupOutcome
from posemaster.facade.types import DashboardStats
from posemaster.models import LogEntry, PoseRecord


class ExtractRequest(BaseModel):
    image_base64: str = Field(
        ..., description="Base64 image data or a data:<mime>;base64,... URL."
    )
    mime_type: str | None = Field(
        default=None, description="Required unless image_base64 is a data URL."
    )


class KeypointOut(BaseModel):
    name: str | None
    x: float
    y: float
    z: float
    visibility: float


class PoseOut(BaseModel):
    id: str
    timestamp: datetime
    pose_name: str
    confidence: float
    keypoints: list[KeypointOut]

    @classmethod
    def from_record(cls, pose: PoseRecord) -> PoseOut:
        return cls.model_validate(pose.to_dict())


class ExtractResponse(BaseModel):
    success: bool = True
    id: str
    data: PoseOut


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class BackupResponse(BaseModel):
    success: bool
    status: str
    trigger: str
    completed_at: datetime
    bundle_key: str | None = None
    failed_step: str | None = None
    reason: str | None = None

    @classmethod
    def from_outcome(cls, outcome: BackupOutcome) -> BackupResponse:
        return cls(
            success=outcome.ok,
            status=outcome.status.value,
            trigger=outcome.trigger,
            completed_at=outcome.completed_at,
            bundle_key=outcome.bundle_key,
            failed_step=outcome.failed_step.value if outcome.failed_step else None,
            reason=outcome.reason,
        )


class StatsResponse(BaseModel):
    pose_count: int
    image_count: int
    mean_confidence: float
    last_backup_at: datetime | None

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> StatsResponse:
        return cls(
            pose_count=stats.pose_count,
            image_count=stats.image_count,
            mean_confidence=stats.mean_confidence,
            last_backup_at=stats.last_backup_at,
        )


class LogEntryOut(BaseModel):
    id: int
    timestamp: datetime
    level: str
    module: str
    message: str

    @classmethod
    def from_entry(cls, entry: LogEntry) -> LogEntryOut:
        return cls(
            id=entry.id,
            timestamp=entry.timestamp,
            level=entry.level.value,
            module=entry.module.value,
            message=entry.message,
        )
