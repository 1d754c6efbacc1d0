from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import litellm
import pytest
from google.genai import errors as genai_errors

from posemaster.errors import UpstreamUnavailable
from posemaster.estimation.gemini import GeminiPoseEstimator
from posemaster.estimation.litellm import LiteLLMPoseEstimator
from posemaster.estimation.schemas import POSE_PROMPT, PoseEstimateSchema
from tests.conftest import PNG_BYTES, make_estimate


def _chat_response(content: str | None) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestPrompt:
    def test_prompt_names_every_landmark(self):
        assert "left_heel" in POSE_PROMPT
        assert "exactly 33" in POSE_PROMPT

    def test_schema_requires_core_fields(self):
        schema = PoseEstimateSchema.model_json_schema()
        assert set(schema["required"]) == {"pose_name", "confidence", "keypoints"}


# ── litellm ──────────────────────────────────────────────────────────


async def test_litellm_sends_data_url_and_schema(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: dict[str, Any] = {}

    async def fake_acompletion(**kwargs: Any) -> SimpleNamespace:
        captured.update(kwargs)
        return _chat_response(json.dumps(make_estimate()))

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    estimator = LiteLLMPoseEstimator(api_key="sk-test")

    raw = await estimator.estimate(PNG_BYTES, "image/png")

    assert raw["pose_name"] == "Standing"
    assert captured["model"] == "openai/gpt-4o-mini"
    image_part, text_part = captured["messages"][0]["content"]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")
    assert text_part["text"] == POSE_PROMPT
    assert captured["response_format"]["type"] == "json_schema"


async def test_litellm_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_acompletion(**kwargs: Any) -> SimpleNamespace:
        raise ConnectionError("no route to host")

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    with pytest.raises(UpstreamUnavailable):
        await LiteLLMPoseEstimator().estimate(PNG_BYTES, "image/png")


@pytest.mark.parametrize("content", [None, "", "this is not json"])
async def test_litellm_bad_output(
    monkeypatch: pytest.MonkeyPatch, content: str | None
) -> None:
    async def fake_acompletion(**kwargs: Any) -> SimpleNamespace:
        return _chat_response(content)

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    with pytest.raises(UpstreamUnavailable):
        await LiteLLMPoseEstimator().estimate(PNG_BYTES, "image/png")


# ── Gemini ───────────────────────────────────────────────────────────


class FakeModels:
    def __init__(self, text: str | None = None, exc: Exception | None = None):
        self.text = text
        self.exc = exc
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(text=self.text)


def _fake_client(models: FakeModels) -> Any:
    return SimpleNamespace(aio=SimpleNamespace(models=models))


async def test_gemini_inline_image_and_schema() -> None:
    models = FakeModels(text=json.dumps(make_estimate(pose_name="Sitting")))
    estimator = GeminiPoseEstimator(_fake_client(models))

    raw = await estimator.estimate(PNG_BYTES, "image/png")

    assert raw["pose_name"] == "Sitting"
    (call,) = models.calls
    assert call["model"] == "gemini-2.5-flash"
    assert call["contents"][1] == POSE_PROMPT
    assert call["config"]["response_mime_type"] == "application/json"
    assert call["config"]["temperature"] == 0.2


async def test_gemini_api_error() -> None:
    exc = genai_errors.APIError(503, {"error": {"message": "overloaded"}})
    estimator = GeminiPoseEstimator(_fake_client(FakeModels(exc=exc)))
    with pytest.raises(UpstreamUnavailable):
        await estimator.estimate(PNG_BYTES, "image/png")


async def test_gemini_empty_text() -> None:
    estimator = GeminiPoseEstimator(_fake_client(FakeModels(text=None)))
    with pytest.raises(UpstreamUnavailable):
        await estimator.estimate(PNG_BYTES, "image/png")
