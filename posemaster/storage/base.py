from __future__ import annotations

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """Abstract key/blob storage used for image documents and backup bundles."""

    @abstractmethod
    def write(self, key: str, data: bytes) -> None:
        """Write data to the given key, replacing any previous value."""
        ...

    @abstractmethod
    def read(self, key: str) -> bytes:
        """Read data from the given key. Raises ``KeyError`` if missing."""
        ...

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """List all keys under *prefix*, sorted."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if the key exists."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the given key. Missing keys are ignored."""
        ...

    @abstractmethod
    def move(self, src: str, dst: str) -> None:
        """Rename *src* to *dst* atomically, replacing any existing *dst*."""
        ...
