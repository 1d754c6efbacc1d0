from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Self

from posemaster.models import ImageRecord, PoseRecord


class _Lifecycle(ABC):
    """Shared lifecycle for both store kinds.

    A store starts empty after ``init()``, is mutated only through its
    insert/delete operations, and releases its resources on ``close()``.
    """

    @abstractmethod
    async def init(self) -> None:
        """Create tables / directories (idempotent)."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Drop all data and recreate from scratch."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any held resources (connections, file handles)."""
        ...

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class PoseStore(_Lifecycle):
    """Structured (relational) store holding one row per extraction.

    Implementations must raise :class:`~posemaster.errors.PersistenceError`
    when an insert would collide with an existing ``id``.
    """

    # ── Writes ───────────────────────────────────────────────────────

    @abstractmethod
    async def insert_pose(self, pose: PoseRecord) -> PoseRecord:
        """Persist a new pose record and return it."""
        ...

    @abstractmethod
    async def delete_pose(self, pose_id: str) -> None:
        """Remove a pose record. Used only to roll back a failed pair write."""
        ...

    # ── Reads ────────────────────────────────────────────────────────

    @abstractmethod
    async def get_pose(self, pose_id: str) -> PoseRecord | None:
        """Return a pose by ID, or ``None``."""
        ...

    @abstractmethod
    async def list_poses(self) -> list[PoseRecord]:
        """Return all poses ordered by creation, oldest first."""
        ...

    @abstractmethod
    async def count_poses(self) -> int: ...

    @abstractmethod
    async def mean_confidence(self) -> float:
        """Average confidence across all poses; ``0.0`` when empty."""
        ...


class ImageStore(_Lifecycle):
    """Document/blob store holding one document per captured image.

    Implementations must raise :class:`~posemaster.errors.PersistenceError`
    on a duplicate ``id`` or on a second image for the same pose.
    """

    # ── Writes ───────────────────────────────────────────────────────

    @abstractmethod
    async def insert_image(self, image: ImageRecord) -> ImageRecord:
        """Persist a new image document and return it."""
        ...

    @abstractmethod
    async def delete_image(self, image_id: str) -> None:
        """Remove an image document."""
        ...

    # ── Reads ────────────────────────────────────────────────────────

    @abstractmethod
    async def get_image(self, image_id: str) -> ImageRecord | None:
        """Return an image by ID, or ``None``."""
        ...

    @abstractmethod
    async def get_image_for_pose(self, pose_id: str) -> ImageRecord | None:
        """Return the image referencing *pose_id*, or ``None``."""
        ...

    @abstractmethod
    async def list_images(self) -> list[ImageRecord]:
        """Return all images ordered by creation, oldest first."""
        ...

    @abstractmethod
    async def count_images(self) -> int: ...
