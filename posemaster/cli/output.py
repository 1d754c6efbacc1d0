"""Terminal rendering for the posemaster CLI.

Color is dropped when stdout is not a TTY or ``NO_COLOR`` is set.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from posemaster.backup.states import BackupOutcome
    from posemaster.facade.types import DashboardStats
    from posemaster.models import PoseRecord

_CODES = {"bold": "1", "dim": "2", "red": "31", "green": "32", "cyan": "36"}

_COLOR = bool(
    not os.environ.get("NO_COLOR")
    and getattr(sys.stdout, "isatty", None)
    and sys.stdout.isatty()
)


def style(text: str, *names: str) -> str:
    if not _COLOR or not names:
        return text
    codes = ";".join(_CODES[n] for n in names)
    return f"\033[{codes}m{text}\033[0m"


def dim(text: str) -> str:
    return style(text, "dim")


def header(title: str) -> None:
    print(f"\n{style(title, 'bold')}")


def success(msg: str) -> None:
    print(f"  {style('✓', 'green')} {msg}")


def error(msg: str) -> None:
    print(f"  {style('✗', 'red')} {msg}", file=sys.stderr)


def info(msg: str) -> None:
    print(f"  {msg}")


def kv(key: str, value: object, indent: int = 2) -> None:
    print(f"{' ' * indent}{dim(f'{key}:')}  {value}")


def masked(secret: str) -> str:
    if len(secret) <= 10:
        return "*" * len(secret)
    return f"{secret[:6]}...{secret[-4:]}"


def confidence_bar(confidence: float, width: int = 20) -> str:
    """Render a 0-1 confidence as a fixed-width bar plus percentage."""
    filled = round(max(0.0, min(confidence, 1.0)) * width)
    bar = style("█" * filled, "cyan") + dim("░" * (width - filled))
    return f"{bar} {confidence * 100:.1f}%"


def pose_summary(pose: PoseRecord) -> None:
    success(style(pose.pose_name, "bold"))
    kv("Confidence", confidence_bar(pose.confidence))
    kv("Pose ID", pose.id)
    visible = sum(1 for kp in pose.keypoints if kp.visibility >= 0.5)
    kv("Keypoints", f"{len(pose.keypoints)} ({visible} visible)")


def backup_summary(outcome: BackupOutcome, recipient: str) -> None:
    if not outcome.ok:
        step = outcome.failed_step.value if outcome.failed_step else "startup"
        error(f"Backup failed during {step}: {outcome.reason}")
        return
    success(f"Backup written to {outcome.bundle_key}")
    kv("Sent to", recipient)
    kv("Completed", outcome.completed_at.isoformat(timespec="seconds"))


def stats_summary(stats: DashboardStats) -> None:
    header("Dataset")
    kv("Poses (SQL)", stats.pose_count)
    kv("Images (documents)", stats.image_count)
    kv("Mean confidence", confidence_bar(stats.mean_confidence))
    last = stats.last_backup_at
    kv("Last backup", last.isoformat(timespec="seconds") if last else dim("never"))
