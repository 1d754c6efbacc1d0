from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from posemaster.db.base import Base, TimeStampMixin


class PoseRow(TimeStampMixin, Base):
    """One row per successful extraction.

    ``seq`` gives a total insertion order even when two rows share a
    ``created_at`` value; ``id`` is the identifier shared with the image
    document.
    """

    __tablename__ = "poses"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    pose_name: Mapped[str] = mapped_column(String(255), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    keypoints: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
