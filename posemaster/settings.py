from __future__ import annotations

from dataclasses import dataclass

DEFAULT_RECIPIENT = "admin@posemaster.com"
DEFAULT_SENDER = "system@posemaster.com"
DEFAULT_SOURCE_TAG = "PoseMaster Backend"


@dataclass
class BackupSettings:
    """Runtime knobs for extraction timeouts and the backup run."""

    recipient: str = DEFAULT_RECIPIENT
    sender: str = DEFAULT_SENDER
    schedule_at: str = "23:59"
    estimate_timeout: float = 60.0
    notify_timeout: float = 60.0
    source_tag: str = DEFAULT_SOURCE_TAG
