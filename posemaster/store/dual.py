from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from posemaster.errors import PersistenceError
from posemaster.logsink import LogSink
from posemaster.models import ImageRecord, LogModule, PoseRecord
from posemaster.models.utils import utcnow
from posemaster.store.base import ImageStore, PoseStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    """Both stores as seen at one instant, pairs complete."""

    poses: list[PoseRecord]
    images: list[ImageRecord]
    taken_at: datetime = field(default_factory=utcnow)


class DualStore:
    """Keeps a pose store and an image store linked one-to-one.

    Every pose/image pair is written inside one critical section with the
    pose first.  If the image write fails the pose is deleted again, so
    readers never see an image without its pose nor a pose left behind
    by a failed submission.
    """

    def __init__(
        self,
        poses: PoseStore,
        images: ImageStore,
        log_sink: LogSink,
    ) -> None:
        self.poses = poses
        self.images = images
        self._log = log_sink
        self._lock = asyncio.Lock()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        await self.poses.init()
        await self.images.init()

    async def reset(self) -> None:
        async with self._lock:
            await self.poses.reset()
            await self.images.reset()

    async def close(self) -> None:
        await self.poses.close()
        await self.images.close()

    # ── Writes ───────────────────────────────────────────────────────

    async def commit_pair(self, pose: PoseRecord, image: ImageRecord) -> None:
        if image.pose_id != pose.id:
            raise PersistenceError(
                f"Image {image.id} references {image.pose_id}, expected {pose.id}"
            )
        async with self._lock:
            await self.poses.insert_pose(pose)
            try:
                await self.images.insert_image(image)
            except Exception as exc:
                self._log.error(
                    LogModule.STORE,
                    f"Image write failed for pose {pose.id}; rolling back",
                )
                await self._rollback(pose.id)
                if isinstance(exc, PersistenceError):
                    raise
                raise PersistenceError(f"Image write failed: {exc}") from exc

    async def _rollback(self, pose_id: str) -> None:
        try:
            await self.poses.delete_pose(pose_id)
        except Exception:
            logger.exception("Rollback of pose %s failed", pose_id)
            self._log.error(
                LogModule.STORE,
                f"Rollback failed; pose {pose_id} has no image",
            )

    # ── Reads ────────────────────────────────────────────────────────

    async def list_poses(self) -> list[PoseRecord]:
        return await self.poses.list_poses()

    async def list_images(self) -> list[ImageRecord]:
        return await self.images.list_images()

    async def snapshot(self, taken_at: datetime | None = None) -> StoreSnapshot:
        async with self._lock:
            poses = await self.poses.list_poses()
            images = await self.images.list_images()
        return StoreSnapshot(poses=poses, images=images, taken_at=taken_at or utcnow())

    async def count_poses(self) -> int:
        return await self.poses.count_poses()

    async def count_images(self) -> int:
        return await self.images.count_images()

    async def mean_confidence(self) -> float:
        return await self.poses.mean_confidence()
