"""Extraction gateway: image in, validated and persisted pose record out."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import math
import re
from typing import Any

from pydantic import ValidationError

from posemaster.errors import (
    ExtractionContractError,
    InvalidInput,
    PoseMasterError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from posemaster.estimation.base import PoseEstimator
from posemaster.estimation.schemas import PoseEstimateSchema
from posemaster.logsink import LogSink
from posemaster.models import (
    KEYPOINT_COUNT,
    LANDMARK_NAMES,
    SUPPORTED_MIME_TYPES,
    ImageRecord,
    Keypoint,
    LogModule,
    PoseRecord,
)
from posemaster.store.dual import DualStore

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATE_TIMEOUT = 60.0

_DATA_URL_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.S
)


def decode_image_payload(
    payload: str, mime_type: str | None = None
) -> tuple[bytes, str]:
    """Decode a base64 image or a ``data:<mime>;base64,...`` URL.

    An explicit *mime_type* wins over the one embedded in a data URL.
    """
    payload = payload.strip()
    if not payload:
        raise InvalidInput("Empty image payload")

    match = _DATA_URL_RE.match(payload)
    if match:
        mime_type = mime_type or match.group("mime")
        payload = match.group("data")
    if not mime_type:
        raise InvalidInput("Missing mime type")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Malformed base64 image payload") from exc
    return data, mime_type.lower()


def _finite(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def validate_estimate(raw: Any) -> tuple[str, float, tuple[Keypoint, ...]]:
    """Check a raw estimate and return ``(label, confidence, keypoints)``.

    Raises ExtractionContractError on any structural violation.
    """
    try:
        estimate = PoseEstimateSchema.model_validate(raw)
    except ValidationError as exc:
        raise ExtractionContractError(
            f"Estimate does not match schema ({exc.error_count()} errors)"
        ) from exc

    label = estimate.pose_name.strip()
    if not label:
        raise ExtractionContractError("Empty pose label")
    if not _finite(estimate.confidence) or not 0.0 <= estimate.confidence <= 1.0:
        raise ExtractionContractError(
            f"Confidence {estimate.confidence!r} outside [0, 1]"
        )
    if len(estimate.keypoints) != KEYPOINT_COUNT:
        raise ExtractionContractError(
            f"Expected {KEYPOINT_COUNT} keypoints, got {len(estimate.keypoints)}"
        )

    # Keypoint rejects non-finite coordinates itself.
    keypoints = tuple(
        Keypoint(
            x=kp.x,
            y=kp.y,
            z=kp.z,
            visibility=kp.visibility,
            name=kp.name or LANDMARK_NAMES[i],
        )
        for i, kp in enumerate(estimate.keypoints)
    )
    return label, estimate.confidence, keypoints


class ExtractionGateway:
    """Turns a raw image into a stored pose/image pair.

    The estimator call is the only suspension point outside the store's
    commit lock, so concurrent submissions overlap while waiting on it.
    Failures are never retried here.
    """

    def __init__(
        self,
        estimator: PoseEstimator,
        store: DualStore,
        log_sink: LogSink,
        *,
        estimate_timeout: float = DEFAULT_ESTIMATE_TIMEOUT,
    ) -> None:
        self._estimator = estimator
        self._store = store
        self._log = log_sink
        self._estimate_timeout = estimate_timeout

    async def submit(self, image: bytes, mime_type: str) -> PoseRecord:
        try:
            mime_type = self._check_input(image, mime_type)
        except InvalidInput as exc:
            self._log.warn(LogModule.GATEWAY, f"Submission rejected: {exc.category}")
            raise

        self._log.info(
            LogModule.GATEWAY,
            f"Submission received ({len(image)} bytes, {mime_type})",
        )
        try:
            pose = await self._extract_and_store(image, mime_type)
        except PoseMasterError as exc:
            self._log.error(LogModule.GATEWAY, f"Extraction failed: {exc.category}")
            raise

        self._log.success(
            LogModule.GATEWAY,
            f"Pose detected: {pose.pose_name} ({pose.confidence * 100:.1f}%)",
        )
        return pose

    async def submit_base64(
        self, payload: str, mime_type: str | None = None
    ) -> PoseRecord:
        try:
            image, mime_type = decode_image_payload(payload, mime_type)
        except InvalidInput as exc:
            self._log.warn(LogModule.GATEWAY, f"Submission rejected: {exc.category}")
            raise
        return await self.submit(image, mime_type)

    @staticmethod
    def _check_input(image: bytes, mime_type: str) -> str:
        if not image:
            raise InvalidInput("Empty image payload")
        mime_type = (mime_type or "").split(";", 1)[0].strip().lower()
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise InvalidInput(f"Unsupported mime type {mime_type!r}")
        return mime_type

    async def _extract_and_store(self, image: bytes, mime_type: str) -> PoseRecord:
        raw = await self._estimate(image, mime_type)
        label, confidence, keypoints = validate_estimate(raw)

        pose = PoseRecord(pose_name=label, confidence=confidence, keypoints=keypoints)
        record = ImageRecord(pose_id=pose.id, mime_type=mime_type, data=image)
        await self._store.commit_pair(pose, record)
        logger.debug("Stored pose %s with image %s", pose.id, record.id)
        return pose

    async def _estimate(self, image: bytes, mime_type: str) -> Any:
        try:
            async with asyncio.timeout(self._estimate_timeout):
                return await self._estimator.estimate(image, mime_type)
        except TimeoutError as exc:
            raise UpstreamTimeout(
                f"Estimator did not respond within {self._estimate_timeout:g}s"
            ) from exc
        except PoseMasterError:
            raise
        except Exception as exc:
            logger.exception("Estimator raised an unexpected error")
            raise UpstreamUnavailable(str(exc)) from exc
