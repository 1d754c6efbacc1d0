"""Main facade for the posemaster library."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from posemaster.backup.coordinator import BackupCoordinator
from posemaster.backup.scheduler import DailyBackupScheduler
from posemaster.facade.types import DashboardStats
from posemaster.gateway import ExtractionGateway
from posemaster.logsink import LogSink
from posemaster.settings import BackupSettings
from posemaster.store.dual import DualStore

if TYPE_CHECKING:
    from posemaster.backup.states import BackupOutcome
    from posemaster.estimation.base import PoseEstimator
    from posemaster.models import ImageRecord, LogEntry, PoseRecord
    from posemaster.notify.base import Notifier
    from posemaster.storage.base import StorageBackend
    from posemaster.store.base import ImageStore, PoseStore

logger = logging.getLogger(__name__)


class PoseMaster:
    """Main entry point for the posemaster library.

    Wires the extraction gateway, the paired stores and the backup
    coordinator around one shared log sink.

    Usage::

        from posemaster.estimation.gemini import GeminiPoseEstimator
        from posemaster.notify.outbox import OutboxNotifier
        from posemaster.storage.disk import DiskStorage
        from posemaster.store.memory import InMemoryImageStore, InMemoryPoseStore

        pm = PoseMaster(
            pose_store=InMemoryPoseStore(),
            image_store=InMemoryImageStore(),
            storage=DiskStorage("./data"),
            estimator=GeminiPoseEstimator.from_config({"api_key": "..."}),
            notifier=OutboxNotifier(),
        )
        await pm.init()
        pose = await pm.submit(image_bytes, "image/jpeg")
    """

    def __init__(
        self,
        pose_store: PoseStore,
        image_store: ImageStore,
        storage: StorageBackend,
        estimator: PoseEstimator,
        notifier: Notifier,
        settings: BackupSettings | None = None,
        log_sink: LogSink | None = None,
    ) -> None:
        self.settings = settings or BackupSettings()
        self.log_sink = log_sink or LogSink()
        self._storage = storage
        self._store = DualStore(pose_store, image_store, self.log_sink)
        self._gateway = ExtractionGateway(
            estimator,
            self._store,
            self.log_sink,
            estimate_timeout=self.settings.estimate_timeout,
        )
        self._backup = BackupCoordinator(
            self._store,
            storage,
            notifier,
            self.log_sink,
            self.settings,
        )
        self._scheduler = DailyBackupScheduler(
            self._backup, self.log_sink, self.settings.schedule_at
        )

    @classmethod
    def from_config(
        cls, config: dict[str, Any], *, log_sink: LogSink | None = None
    ) -> PoseMaster:
        from posemaster.config import parse_config

        c = parse_config(config)
        return cls(
            pose_store=c.pose_store,
            image_store=c.image_store,
            storage=c.storage,
            estimator=c.estimator,
            notifier=c.notifier,
            settings=c.settings,
            log_sink=log_sink,
        )

    @property
    def backup(self) -> BackupCoordinator:
        return self._backup

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    async def init(self) -> None:
        """Create missing tables / directories (non-destructive)."""
        await self._store.init()

    async def reset(self) -> None:
        """Drop all data and recreate from scratch."""
        await self._store.reset()

    async def close(self) -> None:
        await self.stop_scheduler()
        await self._store.close()

    # ── Extraction ───────────────────────────────────────────────────

    async def submit(self, image: bytes, mime_type: str) -> PoseRecord:
        return await self._gateway.submit(image, mime_type)

    async def submit_base64(
        self, payload: str, mime_type: str | None = None
    ) -> PoseRecord:
        return await self._gateway.submit_base64(payload, mime_type)

    # ── Backup ───────────────────────────────────────────────────────

    async def run_backup(self, trigger: str = "manual") -> BackupOutcome:
        return await self._backup.run_backup(trigger)

    def start_scheduler(self) -> None:
        self._scheduler.start()

    async def stop_scheduler(self) -> None:
        await self._scheduler.stop()

    # ── Queries ──────────────────────────────────────────────────────

    async def stats(self) -> DashboardStats:
        return DashboardStats(
            pose_count=await self._store.count_poses(),
            image_count=await self._store.count_images(),
            mean_confidence=await self._store.mean_confidence(),
            last_backup_at=self._backup.last_backup_at,
        )

    def recent_logs(self, n: int = 50) -> list[LogEntry]:
        return self.log_sink.recent(n)

    async def list_poses(self) -> list[PoseRecord]:
        return await self._store.list_poses()

    async def list_images(self) -> list[ImageRecord]:
        return await self._store.list_images()
