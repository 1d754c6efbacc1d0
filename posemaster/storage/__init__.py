from posemaster.storage.base import StorageBackend
from posemaster.storage.disk import DiskStorage

__all__ = [
    "DiskStorage",
    "StorageBackend",
]
