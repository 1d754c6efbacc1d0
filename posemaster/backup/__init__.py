from posemaster.backup.bundle import (
    bundle_key,
    bundle_name_for,
    build_manifest,
    encode_bundle,
    load_bundle,
)
from posemaster.backup.coordinator import BackupCoordinator
from posemaster.backup.policy import RunPolicy, SingleFlightPolicy
from posemaster.backup.scheduler import (
    DailyBackupScheduler,
    next_run_after,
    parse_time_of_day,
)
from posemaster.backup.states import BackupOutcome, BackupState, BackupStatus

__all__ = [
    "BackupCoordinator",
    "BackupOutcome",
    "BackupState",
    "BackupStatus",
    "DailyBackupScheduler",
    "RunPolicy",
    "SingleFlightPolicy",
    "build_manifest",
    "bundle_key",
    "bundle_name_for",
    "encode_bundle",
    "load_bundle",
    "next_run_after",
    "parse_time_of_day",
]
