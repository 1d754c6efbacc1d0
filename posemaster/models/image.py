from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from posemaster.models.utils import generate_id, utcnow

SUPPORTED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/bmp",
    }
)


@dataclass(frozen=True)
class ImageRecord:
    """The source image paired with exactly one :class:`PoseRecord`."""

    pose_id: str
    mime_type: str
    data: bytes = field(repr=False)

    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "sql_ref_id": self.pose_id,
            "mime_type": self.mime_type,
            "data_base64": base64.b64encode(self.data).decode("ascii"),
            "created_at": self.created_at.isoformat(),
            "metadata": {"size_bytes": self.size_bytes},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageRecord:
        return cls(
            id=data["_id"],
            pose_id=data["sql_ref_id"],
            mime_type=data["mime_type"],
            data=base64.b64decode(data["data_base64"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
