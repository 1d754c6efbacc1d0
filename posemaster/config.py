from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Generic, TypeVar

from posemaster.estimation.base import PoseEstimator
from posemaster.notify.base import Notifier
from posemaster.settings import BackupSettings
from posemaster.storage.base import StorageBackend
from posemaster.store.base import ImageStore, PoseStore


T = TypeVar("T")


class _Registry(Generic[T]):
    """Lazily-populated factory registry.

    Each backend module registers itself via :meth:`register`.
    :meth:`build` resolves a provider name to a factory, calling
    ``factory.from_config(config)`` if available, otherwise
    ``factory(**config)``.
    """

    def __init__(self, label: str) -> None:
        self._label = label
        self._factories: dict[str, type[T]] = {}
        self._defaults_loaded = False

    def register(self, name: str, cls: type[T]) -> None:
        self._factories[name] = cls

    def names(self) -> list[str]:
        self._ensure_defaults()
        return list(self._factories)

    def build(self, provider: str, config: dict[str, Any]) -> T:
        self._ensure_defaults()
        factory = self._factories.get(provider)
        if factory is None:
            raise ValueError(
                f"Unknown {self._label} provider '{provider}'. "
                f"Available: {list(self._factories)}"
            )
        if hasattr(factory, "from_config"):
            return factory.from_config(config)  # type: ignore[return-value]
        return factory(**config)  # type: ignore[return-value]

    def _ensure_defaults(self) -> None:
        if not self._defaults_loaded:
            self._load_defaults()
            self._defaults_loaded = True

    def _load_defaults(self) -> None:
        """Override point: subclasses populate built-in factories here."""


class _StorageRegistry(_Registry[StorageBackend]):
    def _load_defaults(self) -> None:
        from posemaster.storage.disk import DiskStorage

        self.register("disk", DiskStorage)


class _PoseStoreRegistry(_Registry[PoseStore]):
    def _load_defaults(self) -> None:
        from posemaster.store.memory import InMemoryPoseStore
        from posemaster.store.sql import SqlPoseStore

        self.register("memory", InMemoryPoseStore)
        self.register("sql", SqlPoseStore)


class _ImageStoreRegistry(_Registry[ImageStore]):
    """Document stores are built on top of the configured storage backend."""

    def _load_defaults(self) -> None:
        from posemaster.store.document import DocumentImageStore
        from posemaster.store.memory import InMemoryImageStore

        self.register("memory", InMemoryImageStore)
        self.register("document", DocumentImageStore)

    def build_on(
        self, provider: str, config: dict[str, Any], storage: StorageBackend
    ) -> ImageStore:
        if provider == "document":
            config = {**config, "storage": storage}
        return self.build(provider, config)


class _EstimatorRegistry(_Registry[PoseEstimator]):
    def _load_defaults(self) -> None:
        from posemaster.estimation.gemini import GeminiPoseEstimator
        from posemaster.estimation.litellm import LiteLLMPoseEstimator

        self.register("gemini", GeminiPoseEstimator)
        self.register("openai", LiteLLMPoseEstimator)


class _NotifierRegistry(_Registry[Notifier]):
    def _load_defaults(self) -> None:
        from posemaster.notify.outbox import OutboxNotifier
        from posemaster.notify.smtp import SmtpNotifier

        self.register("outbox", OutboxNotifier)
        self.register("smtp", SmtpNotifier)


# Singleton instances
storage_registry = _StorageRegistry("storage")
pose_store_registry = _PoseStoreRegistry("pose_store")
image_store_registry = _ImageStoreRegistry("image_store")
estimator_registry = _EstimatorRegistry("estimator")
notifier_registry = _NotifierRegistry("notifier")


@dataclass
class Components:
    storage: StorageBackend
    pose_store: PoseStore
    image_store: ImageStore
    estimator: PoseEstimator
    notifier: Notifier
    settings: BackupSettings


def parse_settings(config: dict[str, Any]) -> BackupSettings:
    known = {f.name for f in fields(BackupSettings)}
    unknown = set(config) - known
    if unknown:
        raise ValueError(
            f"Unknown backup setting(s) {sorted(unknown)}. Available: {sorted(known)}"
        )
    return BackupSettings(**config)


def parse_config(config: dict[str, Any]) -> Components:
    """Parse a user config dict and build every collaborator.

    Expected shape::

        {
            "storage": {"provider": "disk", "config": {"base_path": "data"}},
            "pose_store": {"provider": "sql", "config": {"url": "sqlite+aiosqlite:///"}},
            "image_store": {"provider": "document", "config": {}},
            "estimator": {"provider": "gemini", "api_key": "..."},
            "notifier": {"provider": "smtp", "config": {"host": "smtp.local"}},
            "backup": {"recipient": "admin@posemaster.com", "schedule_at": "23:59"},
        }

    Stores default to in-memory and the notifier to the in-memory outbox.
    The ``estimator`` section is required.
    """
    storage_cfg = config.get("storage", {})
    pose_cfg = config.get("pose_store", {})
    image_cfg = config.get("image_store", {})
    notifier_cfg = config.get("notifier", {})
    estimator_cfg = config.get("estimator")
    if not estimator_cfg:
        raise ValueError(
            "Missing 'estimator' config section. "
            'Provide at least {"estimator": {"provider": "gemini", "api_key": "..."}}.'
        )

    storage = storage_registry.build(
        storage_cfg.get("provider", "disk"),
        storage_cfg.get("config", {"base_path": "data"}),
    )
    pose_store = pose_store_registry.build(
        pose_cfg.get("provider", "memory"),
        pose_cfg.get("config", {}),
    )
    image_store = image_store_registry.build_on(
        image_cfg.get("provider", "memory"),
        image_cfg.get("config", {}),
        storage,
    )
    estimator_cfg = dict(estimator_cfg)
    estimator = estimator_registry.build(
        estimator_cfg.pop("provider", "gemini"),
        estimator_cfg,
    )
    notifier = notifier_registry.build(
        notifier_cfg.get("provider", "outbox"),
        notifier_cfg.get("config", {}),
    )

    return Components(
        storage=storage,
        pose_store=pose_store,
        image_store=image_store,
        estimator=estimator,
        notifier=notifier,
        settings=parse_settings(config.get("backup", {})),
    )
