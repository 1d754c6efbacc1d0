from __future__ import annotations

from pydantic import BaseModel, Field

from posemaster.models.pose import KEYPOINT_COUNT, LANDMARK_NAMES


class KeypointSchema(BaseModel):
    name: str | None = Field(default=None, description="MediaPipe landmark name")
    x: float = Field(description="Horizontal position, normalised to 0-1")
    y: float = Field(description="Vertical position, normalised to 0-1")
    z: float = Field(description="Depth relative to the hips")
    visibility: float = Field(description="Likelihood the landmark is visible")


class PoseEstimateSchema(BaseModel):
    pose_name: str = Field(
        description=(
            "A descriptive name of the detected pose "
            "(e.g. 'Standing', 'Yoga Tree Pose', 'Sitting')."
        )
    )
    confidence: float = Field(description="Confidence score between 0 and 1.")
    keypoints: list[KeypointSchema] = Field(
        description=(
            f"A list of {KEYPOINT_COUNT} 3D keypoints representing body landmarks."
        )
    )


POSE_PROMPT = f"""\
Analyze this image and identify the human body pose.

Respond with JSON that mirrors a MediaPipe Pose extraction:
- pose_name: a short descriptive label for the pose.
- confidence: how sure you are of the label, between 0 and 1.
- keypoints: exactly {KEYPOINT_COUNT} landmarks in this order:
  {", ".join(LANDMARK_NAMES)}.
  Each landmark has x and y normalised to 0-1 relative to the image,
  a z depth value and a visibility score between 0 and 1.
"""
