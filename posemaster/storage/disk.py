from __future__ import annotations

import os
from pathlib import Path

from posemaster.storage.base import StorageBackend


class DiskStorage(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: str) -> None:
        self._base = Path(base_path).resolve()
        self._base.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        path = (self._base / key).resolve()
        if not path.is_relative_to(self._base):
            raise ValueError(f"Key escapes storage root: {key!r}")
        return path

    # ---- interface ----

    def write(self, key: str, data: bytes) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never observe a half-written file.
        tmp = path.with_name(f".{path.name}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)

    def read(self, key: str) -> bytes:
        path = self._resolve(key)
        if not path.is_file():
            raise KeyError(key)
        return path.read_bytes()

    def list_keys(self, prefix: str) -> list[str]:
        prefix_path = self._resolve(prefix)
        if not prefix_path.exists():
            return []
        if prefix_path.is_file():
            return [prefix]
        keys: list[str] = []
        for p in prefix_path.rglob("*"):
            if p.is_file() and not p.name.startswith("."):
                keys.append(p.relative_to(self._base).as_posix())
        return sorted(keys)

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.is_file():
            path.unlink()

    def move(self, src: str, dst: str) -> None:
        source = self._resolve(src)
        if not source.is_file():
            raise KeyError(src)
        target = self._resolve(dst)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, target)
