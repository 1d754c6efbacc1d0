from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from posemaster.backup.bundle import (
    build_manifest,
    bundle_key,
    encode_bundle,
    staging_key,
)
from posemaster.backup.policy import RunPolicy, SingleFlightPolicy
from posemaster.backup.states import BackupOutcome, BackupState, BackupStatus
from posemaster.errors import BackupInProgressError, PoseMasterError, UpstreamTimeout
from posemaster.logsink import LogSink
from posemaster.models import BackupManifest, LogModule
from posemaster.models.utils import utcnow
from posemaster.notify.base import Notification, Notifier
from posemaster.settings import BackupSettings
from posemaster.storage.base import StorageBackend
from posemaster.store.dual import DualStore

logger = logging.getLogger(__name__)


class BackupCoordinator:
    """Runs export -> archive -> notify as one single-flight operation.

    Reads never mutate the stores, so a failed run leaves the data as it
    was; only ``last_backup_at`` is withheld.  The archive is written to a
    hidden staging key and only replaces the day's bundle once the
    notification went out, so a failed run never touches an earlier
    successful bundle.
    """

    def __init__(
        self,
        store: DualStore,
        storage: StorageBackend,
        notifier: Notifier,
        log_sink: LogSink,
        settings: BackupSettings | None = None,
        *,
        policy: RunPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._storage = storage
        self._notifier = notifier
        self._log = log_sink
        self._settings = settings or BackupSettings()
        self._policy = policy or SingleFlightPolicy()
        self._clock = clock
        self._state = BackupState.IDLE
        self._last_backup_at: datetime | None = None

    @property
    def state(self) -> BackupState:
        return self._state

    @property
    def last_backup_at(self) -> datetime | None:
        return self._last_backup_at

    async def run_backup(self, trigger: str = "manual") -> BackupOutcome:
        run_id = await self._policy.acquire()
        if run_id is None:
            raise BackupInProgressError()

        success = False
        staged: str | None = None
        try:
            self._log.info(LogModule.SCHEDULER, f"Backup triggered ({trigger})")

            self._state = BackupState.EXPORTING
            manifest = await self._export(trigger)

            self._state = BackupState.ARCHIVING
            data = await asyncio.to_thread(encode_bundle, manifest)
            staged = staging_key(manifest.bundle_name)
            await asyncio.to_thread(self._storage.write, staged, data)
            self._log.info(
                LogModule.STORE, f"Archive created: {manifest.bundle_name}.zip"
            )

            self._state = BackupState.NOTIFYING
            await self._notify(manifest, data)
            key = await self._promote(staged, manifest.bundle_name)
            staged = None

            completed_at = self._clock()
            self._last_backup_at = completed_at
            success = True
            self._log.success(
                LogModule.SCHEDULER,
                f"Backup {manifest.bundle_name} sent to {self._settings.recipient}",
            )
            return BackupOutcome(
                status=BackupStatus.SUCCESS,
                completed_at=completed_at,
                trigger=trigger,
                bundle_key=key,
            )
        except Exception as exc:
            return await self._fail(trigger, exc, staged)
        finally:
            self._state = BackupState.IDLE
            await self._policy.release(run_id, success=success)

    async def _export(self, trigger: str) -> BackupManifest:
        snapshot = await self._store.snapshot(taken_at=self._clock())
        manifest = build_manifest(
            snapshot, trigger=trigger, source=self._settings.source_tag
        )
        self._log.info(
            LogModule.STORE,
            f"Exporting {len(manifest.poses)} SQL records and "
            f"{len(manifest.images)} NoSQL documents",
        )
        return manifest

    async def _promote(self, staged: str, bundle_name: str) -> str:
        key = bundle_key(bundle_name)
        replaced = await asyncio.to_thread(self._storage.exists, key)
        await asyncio.to_thread(self._storage.move, staged, key)
        if replaced:
            self._log.info(LogModule.STORE, f"Replaced earlier bundle {key}")
        return key

    async def _notify(self, manifest: BackupManifest, data: bytes) -> None:
        day = manifest.snapshot_at.date().isoformat()
        notification = Notification(
            recipient=self._settings.recipient,
            sender=self._settings.sender,
            subject=f"Daily DB Backup - {day}",
            body=(
                f"Attached is the PoseMaster backup for {day}: "
                f"{len(manifest.poses)} pose records and "
                f"{len(manifest.images)} image documents."
            ),
            attachment_name=f"{manifest.bundle_name}.zip",
            attachment=data,
        )
        self._log.info(
            LogModule.NOTIFIER, f"Sending backup to {notification.recipient}"
        )
        try:
            async with asyncio.timeout(self._settings.notify_timeout):
                await self._notifier.send(notification)
        except TimeoutError as exc:
            raise UpstreamTimeout(
                f"Notifier did not respond within {self._settings.notify_timeout:g}s"
            ) from exc

    async def _fail(
        self, trigger: str, exc: Exception, staged: str | None
    ) -> BackupOutcome:
        step = self._state
        if isinstance(exc, PoseMasterError):
            category = exc.category
        else:
            category = type(exc).__name__
        logger.error("Backup failed during %s", step, exc_info=exc)
        self._log.error(LogModule.SCHEDULER, f"Backup failed during {step}: {category}")

        if staged is not None:
            try:
                await asyncio.to_thread(self._storage.delete, staged)
            except OSError:
                logger.exception("Could not discard partial bundle %s", staged)

        return BackupOutcome(
            status=BackupStatus.FAILED,
            completed_at=self._clock(),
            trigger=trigger,
            failed_step=step,
            reason=str(exc) or category,
        )
