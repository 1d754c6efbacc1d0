from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta

from posemaster.backup.coordinator import BackupCoordinator
from posemaster.errors import BackupInProgressError
from posemaster.logsink import LogSink
from posemaster.models import LogModule

logger = logging.getLogger(__name__)


def parse_time_of_day(value: str) -> time:
    """Parse ``"HH:MM"`` into a :class:`datetime.time`."""
    try:
        hour, minute = (int(part) for part in value.split(":"))
        return time(hour=hour, minute=minute)
    except ValueError as exc:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM") from exc


def next_run_after(now: datetime, at: time) -> datetime:
    """Return the first instant strictly after *now* whose clock reads *at*."""
    candidate = now.replace(
        hour=at.hour, minute=at.minute, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def _local_now() -> datetime:
    return datetime.now().astimezone()


class DailyBackupScheduler:
    """Fires ``run_backup(trigger="scheduled")`` once a day at a fixed time.

    A run that collides with a manual one is skipped and logged; the next
    firing is always the following day.
    """

    def __init__(
        self,
        coordinator: BackupCoordinator,
        log_sink: LogSink,
        at: str = "23:59",
        *,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._coordinator = coordinator
        self._log = log_sink
        self._at = parse_time_of_day(at)
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="posemaster-backup")
        self._log.info(
            LogModule.SCHEDULER,
            f"Daily backup scheduled at {self._at.strftime('%H:%M')}",
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def fire(self) -> None:
        """Run one scheduled backup now."""
        try:
            outcome = await self._coordinator.run_backup(trigger="scheduled")
        except BackupInProgressError:
            self._log.warn(
                LogModule.SCHEDULER,
                "Scheduled backup skipped: another run is in progress",
            )
            return
        logger.info("Scheduled backup finished with status %s", outcome.status)

    async def _loop(self) -> None:
        while True:
            now = self._clock()
            target = next_run_after(now, self._at)
            delay = (target - now).total_seconds()
            logger.debug("Next backup at %s (in %.0fs)", target.isoformat(), delay)
            await asyncio.sleep(delay)
            await self.fire()
