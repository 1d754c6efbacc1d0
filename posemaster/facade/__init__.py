from posemaster.facade.core import PoseMaster
from posemaster.facade.types import DashboardStats

__all__ = [
    "DashboardStats",
    "PoseMaster",
]
