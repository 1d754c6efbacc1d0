from posemaster.db.base import Base, TimeStampMixin
from posemaster.db.models import PoseRow

__all__ = [
    "Base",
    "PoseRow",
    "TimeStampMixin",
]
