from posemaster.store.base import ImageStore, PoseStore
from posemaster.store.document import DocumentImageStore
from posemaster.store.dual import DualStore, StoreSnapshot
from posemaster.store.memory import InMemoryImageStore, InMemoryPoseStore
from posemaster.store.sql import SqlPoseStore

__all__ = [
    "DocumentImageStore",
    "DualStore",
    "ImageStore",
    "InMemoryImageStore",
    "InMemoryPoseStore",
    "PoseStore",
    "SqlPoseStore",
    "StoreSnapshot",
]
