from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from posemaster.errors import ExtractionContractError
from posemaster.models.utils import generate_id, utcnow

KEYPOINT_COUNT = 33

# MediaPipe Pose landmark order.
LANDMARK_NAMES: tuple[str, ...] = (
    "nose",
    "left_eye_inner",
    "left_eye",
    "left_eye_outer",
    "right_eye_inner",
    "right_eye",
    "right_eye_outer",
    "left_ear",
    "right_ear",
    "mouth_left",
    "mouth_right",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_pinky",
    "right_pinky",
    "left_index",
    "right_index",
    "left_thumb",
    "right_thumb",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
    "left_heel",
    "right_heel",
    "left_foot_index",
    "right_foot_index",
)


def _finite(value: object) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


@dataclass(frozen=True)
class Keypoint:
    """One body landmark with visibility score.

    ``x`` and ``y`` are normalised to [0, 1] by the estimator; ``z`` is
    unconstrained depth.
    """

    x: float
    y: float
    z: float
    visibility: float
    name: str | None = None

    def __post_init__(self) -> None:
        if not all(_finite(v) for v in (self.x, self.y, self.z, self.visibility)):
            raise ExtractionContractError(
                f"Keypoint {self.name or '?'} has non-finite coordinates"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "visibility": self.visibility,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Keypoint:
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            z=float(data["z"]),
            visibility=float(data["visibility"]),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class PoseRecord:
    """A structured measurement of one detected body pose."""

    pose_name: str
    confidence: float
    keypoints: tuple[Keypoint, ...]

    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.pose_name.strip():
            raise ExtractionContractError("Empty pose label")
        if not _finite(self.confidence) or not 0.0 <= self.confidence <= 1.0:
            raise ExtractionContractError(
                f"Confidence {self.confidence!r} outside [0, 1]"
            )
        if len(self.keypoints) != KEYPOINT_COUNT:
            raise ExtractionContractError(
                f"Expected {KEYPOINT_COUNT} keypoints, got {len(self.keypoints)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.created_at.isoformat(),
            "pose_name": self.pose_name,
            "confidence": self.confidence,
            "keypoints": [kp.to_dict() for kp in self.keypoints],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PoseRecord:
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["timestamp"]),
            pose_name=data["pose_name"],
            confidence=float(data["confidence"]),
            keypoints=tuple(Keypoint.from_dict(kp) for kp in data["keypoints"]),
        )
