from __future__ import annotations

import asyncio
import json
import logging

from posemaster.errors import PersistenceError
from posemaster.models import ImageRecord
from posemaster.storage.base import StorageBackend
from posemaster.store.base import ImageStore

logger = logging.getLogger(__name__)


class DocumentImageStore(ImageStore):
    """Image store keeping one JSON document per image on a StorageBackend.

    Documents live under ``<prefix>/<id>.json``.  An in-process index
    (id -> pose id, in creation order) is rebuilt from the documents on
    ``init()`` so reads never have to scan the backend.  Backend calls and
    document decoding run in worker threads.
    """

    def __init__(self, storage: StorageBackend, prefix: str = "images") -> None:
        self._storage = storage
        self._prefix = prefix.strip("/")
        self._order: dict[str, str] = {}
        self._by_pose: dict[str, str] = {}

    def _key(self, image_id: str) -> str:
        return f"{self._prefix}/{image_id}.json"

    def _load(self, key: str) -> ImageRecord:
        return ImageRecord.from_dict(json.loads(self._storage.read(key)))

    def _load_all(self, keys: list[str]) -> list[ImageRecord]:
        return [self._load(key) for key in keys]

    def _scan(self) -> list[ImageRecord]:
        keys = self._storage.list_keys(self._prefix)
        return self._load_all([k for k in keys if k.endswith(".json")])

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        images = await asyncio.to_thread(self._scan)
        images.sort(key=lambda img: img.created_at)
        self._order.clear()
        self._by_pose.clear()
        for image in images:
            self._order[image.id] = image.pose_id
            self._by_pose[image.pose_id] = image.id
        logger.debug(
            "Indexed %d image documents under %s/", len(images), self._prefix
        )

    async def reset(self) -> None:
        keys = await asyncio.to_thread(self._storage.list_keys, self._prefix)
        for key in keys:
            await asyncio.to_thread(self._storage.delete, key)
        await self.init()

    async def close(self) -> None:
        pass

    # ── Writes ───────────────────────────────────────────────────────

    async def insert_image(self, image: ImageRecord) -> ImageRecord:
        if image.id in self._order:
            raise PersistenceError(f"Duplicate image id {image.id}")
        if image.pose_id in self._by_pose:
            raise PersistenceError(f"Pose {image.pose_id} already has an image")
        # Claim the index slots before suspending so a concurrent insert
        # of the same id or pose is rejected.
        self._order[image.id] = image.pose_id
        self._by_pose[image.pose_id] = image.id
        payload = json.dumps(image.to_dict()).encode("utf-8")
        try:
            await asyncio.to_thread(self._storage.write, self._key(image.id), payload)
        except OSError as exc:
            del self._order[image.id]
            del self._by_pose[image.pose_id]
            raise PersistenceError(
                f"Could not write image {image.id}: {exc}"
            ) from exc
        return image

    async def delete_image(self, image_id: str) -> None:
        pose_id = self._order.pop(image_id, None)
        if pose_id is not None:
            self._by_pose.pop(pose_id, None)
        await asyncio.to_thread(self._storage.delete, self._key(image_id))

    # ── Reads ────────────────────────────────────────────────────────

    async def get_image(self, image_id: str) -> ImageRecord | None:
        if image_id not in self._order:
            return None
        return await asyncio.to_thread(self._load, self._key(image_id))

    async def get_image_for_pose(self, pose_id: str) -> ImageRecord | None:
        image_id = self._by_pose.get(pose_id)
        return await self.get_image(image_id) if image_id else None

    async def list_images(self) -> list[ImageRecord]:
        keys = [self._key(image_id) for image_id in self._order]
        return await asyncio.to_thread(self._load_all, keys)

    async def count_images(self) -> int:
        return len(self._order)
