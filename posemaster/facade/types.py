"""Public return types for the posemaster API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class DashboardStats:
    """Aggregates shown on the operator dashboard."""

    pose_count: int
    image_count: int
    mean_confidence: float
    last_backup_at: datetime | None = None

    @property
    def mean_confidence_pct(self) -> float:
        return round(self.mean_confidence * 100, 1)
