from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from posemaster.errors import PersistenceError, UpstreamUnavailable
from posemaster.estimation.base import PoseEstimator
from posemaster.logsink import LogSink
from posemaster.models import LANDMARK_NAMES, ImageRecord, Keypoint, PoseRecord
from posemaster.notify.base import Notification, Notifier
from posemaster.notify.outbox import OutboxNotifier
from posemaster.settings import BackupSettings
from posemaster.storage.disk import DiskStorage
from posemaster.store.dual import DualStore
from posemaster.store.memory import InMemoryImageStore, InMemoryPoseStore

# Image bytes are passed through untouched, so only the signature is real.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(64))


def make_estimate(
    *,
    pose_name: str = "Standing",
    confidence: float = 0.92,
    keypoint_count: int = 33,
) -> dict[str, Any]:
    """Raw estimator output in the shape the vision models return."""
    return {
        "pose_name": pose_name,
        "confidence": confidence,
        "keypoints": [
            {
                "name": LANDMARK_NAMES[i % len(LANDMARK_NAMES)],
                "x": 0.5,
                "y": i / 40,
                "z": -0.1,
                "visibility": 0.99,
            }
            for i in range(keypoint_count)
        ],
    }


def make_pose(pose_name: str = "Standing", confidence: float = 0.9) -> PoseRecord:
    return PoseRecord(
        pose_name=pose_name,
        confidence=confidence,
        keypoints=tuple(
            Keypoint(x=0.5, y=i / 40, z=0.0, visibility=1.0, name=name)
            for i, name in enumerate(LANDMARK_NAMES)
        ),
    )


def make_image(pose: PoseRecord, data: bytes = PNG_BYTES) -> ImageRecord:
    return ImageRecord(pose_id=pose.id, mime_type="image/png", data=data)


class FakeEstimator(PoseEstimator):
    """Returns a canned estimate, or raises, after an optional delay."""

    def __init__(
        self,
        result: Any = None,
        *,
        exc: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.result = make_estimate() if result is None else result
        self.exc = exc
        self.delay = delay
        self.calls: list[tuple[bytes, str]] = []

    async def estimate(self, image: bytes, mime_type: str) -> dict[str, Any]:
        self.calls.append((image, mime_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.result


class FailingImageStore(InMemoryImageStore):
    async def insert_image(self, image: ImageRecord) -> ImageRecord:
        raise PersistenceError("image store unavailable")


class FailingNotifier(Notifier):
    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, notification: Notification) -> None:
        self.attempts += 1
        raise UpstreamUnavailable("relay refused connection")


class SlowNotifier(OutboxNotifier):
    """Blocks in ``send`` until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def send(self, notification: Notification) -> None:
        self.entered.set()
        await self.release.wait()
        await super().send(notification)


@pytest.fixture()
def log_sink() -> LogSink:
    return LogSink()


@pytest.fixture()
def dual_store(log_sink: LogSink) -> DualStore:
    return DualStore(InMemoryPoseStore(), InMemoryImageStore(), log_sink)


@pytest.fixture()
def storage(tmp_path: Path) -> DiskStorage:
    return DiskStorage(str(tmp_path / "storage"))


@pytest.fixture()
def outbox() -> OutboxNotifier:
    return OutboxNotifier()


@pytest.fixture()
def settings() -> BackupSettings:
    return BackupSettings(estimate_timeout=1.0, notify_timeout=1.0)
