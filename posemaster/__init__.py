"""posemaster: pose extraction ingest, paired persistence and daily backup export."""

from posemaster.errors import (
    BackupInProgressError,
    ExtractionContractError,
    InvalidInput,
    PersistenceError,
    PoseMasterError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from posemaster.facade import DashboardStats, PoseMaster

__version__ = "0.1.0"

__all__ = [
    "BackupInProgressError",
    "DashboardStats",
    "ExtractionContractError",
    "InvalidInput",
    "PersistenceError",
    "PoseMaster",
    "PoseMasterError",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "__version__",
]
