from posemaster.estimation.base import PoseEstimator
from posemaster.estimation.gemini import GeminiPoseEstimator
from posemaster.estimation.litellm import LiteLLMPoseEstimator
from posemaster.estimation.schemas import (
    POSE_PROMPT,
    KeypointSchema,
    PoseEstimateSchema,
)

__all__ = [
    "POSE_PROMPT",
    "GeminiPoseEstimator",
    "KeypointSchema",
    "LiteLLMPoseEstimator",
    "PoseEstimateSchema",
    "PoseEstimator",
]
