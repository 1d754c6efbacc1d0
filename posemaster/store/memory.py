from __future__ import annotations

from posemaster.errors import PersistenceError
from posemaster.models import ImageRecord, PoseRecord
from posemaster.store.base import ImageStore, PoseStore


class InMemoryPoseStore(PoseStore):
    """Pose store backed by a plain dict.

    Dicts preserve insertion order, which is also creation order because
    records are inserted as soon as they are created.
    """

    def __init__(self) -> None:
        self._poses: dict[str, PoseRecord] = {}

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        pass

    async def reset(self) -> None:
        self._poses.clear()

    async def close(self) -> None:
        pass

    # ── Writes ───────────────────────────────────────────────────────

    async def insert_pose(self, pose: PoseRecord) -> PoseRecord:
        if pose.id in self._poses:
            raise PersistenceError(f"Duplicate pose id {pose.id}")
        self._poses[pose.id] = pose
        return pose

    async def delete_pose(self, pose_id: str) -> None:
        self._poses.pop(pose_id, None)

    # ── Reads ────────────────────────────────────────────────────────

    async def get_pose(self, pose_id: str) -> PoseRecord | None:
        return self._poses.get(pose_id)

    async def list_poses(self) -> list[PoseRecord]:
        return list(self._poses.values())

    async def count_poses(self) -> int:
        return len(self._poses)

    async def mean_confidence(self) -> float:
        if not self._poses:
            return 0.0
        return sum(p.confidence for p in self._poses.values()) / len(self._poses)


class InMemoryImageStore(ImageStore):
    """Image store backed by plain dicts, indexed by id and by pose id."""

    def __init__(self) -> None:
        self._images: dict[str, ImageRecord] = {}
        self._by_pose: dict[str, str] = {}

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        pass

    async def reset(self) -> None:
        self._images.clear()
        self._by_pose.clear()

    async def close(self) -> None:
        pass

    # ── Writes ───────────────────────────────────────────────────────

    async def insert_image(self, image: ImageRecord) -> ImageRecord:
        if image.id in self._images:
            raise PersistenceError(f"Duplicate image id {image.id}")
        if image.pose_id in self._by_pose:
            raise PersistenceError(f"Pose {image.pose_id} already has an image")
        self._images[image.id] = image
        self._by_pose[image.pose_id] = image.id
        return image

    async def delete_image(self, image_id: str) -> None:
        image = self._images.pop(image_id, None)
        if image is not None:
            self._by_pose.pop(image.pose_id, None)

    # ── Reads ────────────────────────────────────────────────────────

    async def get_image(self, image_id: str) -> ImageRecord | None:
        return self._images.get(image_id)

    async def get_image_for_pose(self, pose_id: str) -> ImageRecord | None:
        image_id = self._by_pose.get(pose_id)
        return self._images.get(image_id) if image_id else None

    async def list_images(self) -> list[ImageRecord]:
        return list(self._images.values())

    async def count_images(self) -> int:
        return len(self._images)
