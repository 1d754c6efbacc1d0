from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class PoseEstimator(ABC):
    """Black-box capability that turns an image into a raw pose estimate.

    The returned dict is expected to follow
    :class:`~posemaster.estimation.schemas.PoseEstimateSchema`, but it is
    only checked by the caller.  Implementations raise
    :class:`~posemaster.errors.UpstreamUnavailable` when the provider
    cannot be reached or returns something that is not JSON.
    """

    @abstractmethod
    async def estimate(self, image: bytes, mime_type: str) -> dict[str, Any]: ...
