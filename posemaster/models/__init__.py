"""Domain models: plain dataclasses with no infrastructure dependencies.

These are the canonical types passed between the gateway, the stores
and the backup coordinator.  The SQLAlchemy ORM rows used by
``SqlPoseStore`` live separately in ``posemaster.db.models`` and map
to/from these dataclasses at the store boundary.
"""

from posemaster.models.backup import BUNDLE_FORMAT_VERSION, BackupManifest
from posemaster.models.image import SUPPORTED_MIME_TYPES, ImageRecord
from posemaster.models.log import LogEntry, LogLevel, LogModule
from posemaster.models.pose import KEYPOINT_COUNT, LANDMARK_NAMES, Keypoint, PoseRecord
from posemaster.models.utils import generate_id

__all__ = [
    "BUNDLE_FORMAT_VERSION",
    "KEYPOINT_COUNT",
    "LANDMARK_NAMES",
    "SUPPORTED_MIME_TYPES",
    "BackupManifest",
    "ImageRecord",
    "Keypoint",
    "LogEntry",
    "LogLevel",
    "LogModule",
    "PoseRecord",
    "generate_id",
]
