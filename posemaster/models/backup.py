from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from posemaster.models.image import ImageRecord
from posemaster.models.pose import PoseRecord

BUNDLE_FORMAT_VERSION = "1.0"


@dataclass
class BackupManifest:
    """Everything one backup run exports.

    Lives only for the duration of a run; its durable form is the zipped
    bundle written by the coordinator.
    """

    bundle_name: str
    snapshot_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    poses: list[PoseRecord] = field(default_factory=list)
    images: list[ImageRecord] = field(default_factory=list)
