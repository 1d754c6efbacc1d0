"""Pose estimation through the Gemini API with inline image bytes."""

from __future__ import annotations

import json
import logging
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from posemaster.errors import UpstreamUnavailable
from posemaster.estimation.base import PoseEstimator
from posemaster.estimation.schemas import POSE_PROMPT, PoseEstimateSchema

logger = logging.getLogger(__name__)


class GeminiPoseEstimator(PoseEstimator):
    """Estimator calling ``generate_content`` with a JSON response schema.

    Parameters
    ----------
    genai_client:
        An authenticated ``google.genai.Client`` instance.  When omitted a
        client is created from *api_key* on the first request, so a
        missing key only fails calls that actually need the model.
    model:
        Model name, e.g. ``"gemini-2.5-flash"``.
    """

    def __init__(
        self,
        genai_client: genai.Client | None = None,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.2,
        *,
        api_key: str | None = None,
    ) -> None:
        self._client = genai_client
        self._api_key = api_key
        self._model = model
        self._temperature = temperature

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> GeminiPoseEstimator:
        return cls(
            api_key=config.get("api_key"),
            model=config.get("model", "gemini-2.5-flash"),
            temperature=float(config.get("temperature", 0.2)),
        )

    async def estimate(self, image: bytes, mime_type: str) -> dict[str, Any]:
        contents = [
            genai_types.Part.from_bytes(data=image, mime_type=mime_type),
            POSE_PROMPT,
        ]
        try:
            if self._client is None:
                self._client = genai.Client(api_key=self._api_key)
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config={
                    "response_mime_type": "application/json",
                    "response_schema": PoseEstimateSchema,
                    "temperature": self._temperature,
                },
            )
        except (genai_errors.APIError, ValueError) as exc:
            logger.error("Gemini request failed: %s", exc)
            raise UpstreamUnavailable(f"Gemini request failed: {exc}") from exc

        text = response.text
        if not text:
            raise UpstreamUnavailable("Empty response from Gemini")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("Gemini returned non-JSON output: %.200s", text)
            raise UpstreamUnavailable("Gemini returned non-JSON output") from exc
