from __future__ import annotations

import base64
import json
import logging
from typing import Any

import litellm

from posemaster.errors import UpstreamUnavailable
from posemaster.estimation.base import PoseEstimator
from posemaster.estimation.schemas import POSE_PROMPT, PoseEstimateSchema

logger = logging.getLogger(__name__)


def _encode_bytes_as_data_url(data: bytes, mime_type: str) -> str:
    b64 = base64.b64encode(data).decode()
    return f"data:{mime_type};base64,{b64}"


def _build_messages(image: bytes, mime_type: str) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [
        {
            "type": "image_url",
            "image_url": {"url": _encode_bytes_as_data_url(image, mime_type)},
        },
        {"type": "text", "text": POSE_PROMPT},
    ]
    return [{"role": "user", "content": parts}]


def _build_response_format() -> dict:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "pose_estimate",
            "schema": PoseEstimateSchema.model_json_schema(),
        },
    }


class LiteLLMPoseEstimator(PoseEstimator):
    """Estimator for any vision model litellm can route to."""

    def __init__(self, model: str = "openai/gpt-4o-mini", api_key: str | None = None):
        self._model = model
        self._api_key = api_key

    async def estimate(self, image: bytes, mime_type: str) -> dict[str, Any]:
        try:
            response = await litellm.acompletion(
                model=self._model,
                messages=_build_messages(image, mime_type),
                api_key=self._api_key,
                response_format=_build_response_format(),
            )
        except Exception as exc:
            logger.error("litellm request to %s failed: %s", self._model, exc)
            raise UpstreamUnavailable(f"{self._model} request failed: {exc}") from exc

        text: str | None = response.choices[0].message.content  # type: ignore[union-attr]
        if not text:
            raise UpstreamUnavailable(f"Empty response from {self._model}")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("%s returned non-JSON output: %.200s", self._model, text)
            raise UpstreamUnavailable(
                f"{self._model} returned non-JSON output"
            ) from exc
