from __future__ import annotations

import asyncio
import io
import json
import zipfile
from datetime import UTC, datetime

import pytest

from posemaster.backup.bundle import bundle_name_for, load_bundle, staging_key
from posemaster.backup.coordinator import BackupCoordinator
from posemaster.backup.policy import SingleFlightPolicy
from posemaster.backup.states import BackupState, BackupStatus
from posemaster.errors import BackupInProgressError
from posemaster.logsink import LogSink
from posemaster.models import LogLevel
from posemaster.notify.outbox import OutboxNotifier
from posemaster.settings import BackupSettings
from posemaster.storage.disk import DiskStorage
from posemaster.store.dual import DualStore
from tests.conftest import (
    PNG_BYTES,
    FailingNotifier,
    SlowNotifier,
    make_image,
    make_pose,
)

FIXED_NOW = datetime(2025, 6, 1, 23, 59, 30, tzinfo=UTC)


def _coordinator(
    dual_store: DualStore,
    storage: DiskStorage,
    notifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> BackupCoordinator:
    return BackupCoordinator(
        dual_store, storage, notifier, log_sink, settings, clock=lambda: FIXED_NOW
    )


async def _seed(store: DualStore, n: int) -> None:
    for i in range(n):
        pose = make_pose(f"pose-{i}", confidence=0.5 + i / 10)
        await store.commit_pair(pose, make_image(pose))


# ── Success ──────────────────────────────────────────────────────────


async def test_empty_dataset_produces_valid_bundle(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)

    outcome = await coordinator.run_backup()

    assert outcome.status is BackupStatus.SUCCESS
    assert outcome.completed_at == FIXED_NOW
    assert coordinator.last_backup_at == FIXED_NOW
    assert coordinator.state is BackupState.IDLE

    manifest = load_bundle(storage.read(outcome.bundle_key))
    assert manifest.poses == []
    assert manifest.images == []
    assert manifest.metadata["format_version"] == "1.0"
    assert manifest.metadata["source"] == "PoseMaster Backend"
    assert manifest.metadata["trigger"] == "manual"
    assert log_sink.recent(1)[0].level is LogLevel.SUCCESS


async def test_bundle_round_trips_dataset(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    await _seed(dual_store, 3)
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)

    outcome = await coordinator.run_backup()
    manifest = load_bundle(storage.read(outcome.bundle_key))

    assert manifest.poses == await dual_store.list_poses()
    assert manifest.images == await dual_store.list_images()
    assert all(image.data == PNG_BYTES for image in manifest.images)


async def test_bundle_layout(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    await _seed(dual_store, 2)
    outcome = await _coordinator(
        dual_store, storage, outbox, log_sink, settings
    ).run_backup()

    name = bundle_name_for(FIXED_NOW)
    assert name == "backup-2025-06-01"
    assert outcome.bundle_key == f"backups/{name}.zip"
    with zipfile.ZipFile(io.BytesIO(storage.read(outcome.bundle_key))) as zf:
        assert zf.namelist() == [f"{name}.json"]
        document = json.loads(zf.read(f"{name}.json"))

    assert set(document) == {"metadata", "sql_dump", "nosql_dump"}
    assert document["sql_dump"]["table"] == "poses"
    assert len(document["sql_dump"]["rows"]) == 2
    assert document["nosql_dump"]["collection"] == "images"
    assert len(document["nosql_dump"]["documents"]) == 2


async def test_notification_contents(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    outcome = await _coordinator(
        dual_store, storage, outbox, log_sink, settings
    ).run_backup()

    assert len(outbox.sent) == 1
    sent = outbox.sent[0]
    day = "2025-06-01"
    assert sent.recipient == "admin@posemaster.com"
    assert sent.sender == "system@posemaster.com"
    assert sent.subject == f"Daily DB Backup - {day}"
    assert sent.attachment == storage.read(outcome.bundle_key)
    assert sent.attachment_name == f"backup-{day}.zip"


async def test_same_day_rerun_overwrites_bundle(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)
    first = await coordinator.run_backup()
    await _seed(dual_store, 1)
    second = await coordinator.run_backup()

    assert first.bundle_key == second.bundle_key
    assert storage.list_keys("backups") == [second.bundle_key]
    assert len(load_bundle(storage.read(second.bundle_key)).poses) == 1


# ── Single flight ────────────────────────────────────────────────────


async def test_trigger_during_export_rejected(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    await _seed(dual_store, 2)
    seeded = [p.id for p in await dual_store.list_poses()]
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)

    # Hold the export inside the snapshot's critical section.
    entered, release = asyncio.Event(), asyncio.Event()
    list_poses = dual_store.poses.list_poses

    async def gated_list_poses():
        entered.set()
        await release.wait()
        return await list_poses()

    monkeypatch.setattr(dual_store.poses, "list_poses", gated_list_poses)

    first = asyncio.create_task(coordinator.run_backup())
    await entered.wait()
    assert coordinator.state is BackupState.EXPORTING

    with pytest.raises(BackupInProgressError):
        await coordinator.run_backup()
    assert coordinator.state is BackupState.EXPORTING

    late = make_pose("late")
    commit = asyncio.create_task(dual_store.commit_pair(late, make_image(late)))
    await asyncio.sleep(0)
    assert not commit.done()

    release.set()
    outcome = await first
    await commit

    assert outcome.ok
    assert len(outbox.sent) == 1
    manifest = load_bundle(storage.read(outcome.bundle_key))
    assert [p.id for p in manifest.poses] == seeded
    assert [i.pose_id for i in manifest.images] == seeded
    assert await dual_store.count_poses() == 3

    monkeypatch.setattr(dual_store.poses, "list_poses", list_poses)
    assert (await coordinator.run_backup()).ok


async def test_trigger_during_notify_rejected(
    dual_store: DualStore,
    storage: DiskStorage,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    notifier = SlowNotifier()
    coordinator = _coordinator(dual_store, storage, notifier, log_sink, settings)

    first = asyncio.create_task(coordinator.run_backup())
    await notifier.entered.wait()
    assert coordinator.state is BackupState.NOTIFYING

    with pytest.raises(BackupInProgressError):
        await coordinator.run_backup()

    notifier.release.set()
    assert (await first).ok
    assert len(notifier.sent) == 1



async def test_policy_released_after_failure() -> None:
    policy = SingleFlightPolicy()
    run_id = await policy.acquire()
    assert run_id is not None
    assert await policy.acquire() is None

    await policy.release(run_id, success=False)
    assert policy.active_run is None
    assert await policy.acquire() is not None


# ── Failure ──────────────────────────────────────────────────────────


async def test_notify_failure_discards_bundle(
    dual_store: DualStore,
    storage: DiskStorage,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    await _seed(dual_store, 2)
    coordinator = _coordinator(
        dual_store, storage, FailingNotifier(), log_sink, settings
    )

    outcome = await coordinator.run_backup()

    assert outcome.status is BackupStatus.FAILED
    assert outcome.failed_step is BackupState.NOTIFYING
    assert outcome.bundle_key is None
    assert coordinator.last_backup_at is None
    assert coordinator.state is BackupState.IDLE
    assert storage.list_keys("backups") == []
    assert not storage.exists(staging_key(bundle_name_for(FIXED_NOW)))

    error = log_sink.recent(1)[0]
    assert error.level is LogLevel.ERROR
    assert "notifying" in error.message
    assert await dual_store.count_poses() == 2


async def test_notify_timeout_is_a_failed_step(
    dual_store: DualStore,
    storage: DiskStorage,
    log_sink: LogSink,
) -> None:
    settings = BackupSettings(notify_timeout=0.05)
    coordinator = _coordinator(
        dual_store, storage, SlowNotifier(), log_sink, settings
    )

    outcome = await coordinator.run_backup()

    assert outcome.status is BackupStatus.FAILED
    assert outcome.failed_step is BackupState.NOTIFYING
    assert "UpstreamTimeout" in log_sink.recent(1)[0].message


async def test_export_failure_reported(
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
    monkeypatch: pytest.MonkeyPatch,
    dual_store: DualStore,
) -> None:
    async def broken_snapshot(**kwargs):
        raise RuntimeError("disk gone")

    monkeypatch.setattr(dual_store, "snapshot", broken_snapshot)
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)

    outcome = await coordinator.run_backup()

    assert outcome.failed_step is BackupState.EXPORTING
    assert outcome.reason == "disk gone"
    assert outbox.sent == []


async def test_last_backup_survives_later_failure(
    dual_store: DualStore,
    storage: DiskStorage,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    outbox = OutboxNotifier()
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)
    await coordinator.run_backup()

    coordinator._notifier = FailingNotifier()
    outcome = await coordinator.run_backup()

    assert not outcome.ok
    assert coordinator.last_backup_at == FIXED_NOW


# ── Bundle parsing ───────────────────────────────────────────────────


def test_load_bundle_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        load_bundle(b"definitely not a zip")


async def test_failed_rerun_keeps_earlier_bundle(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    await _seed(dual_store, 1)
    coordinator = _coordinator(dual_store, storage, outbox, log_sink, settings)
    good = await coordinator.run_backup()
    archived = storage.read(good.bundle_key)

    await _seed(dual_store, 1)
    coordinator._notifier = FailingNotifier()
    rerun = await coordinator.run_backup()

    assert rerun.failed_step is BackupState.NOTIFYING
    assert storage.list_keys("backups") == [good.bundle_key]
    assert storage.read(good.bundle_key) == archived
    assert len(load_bundle(archived).poses) == 1
    assert not storage.exists(staging_key(bundle_name_for(FIXED_NOW)))


async def test_bundle_dated_by_coordinator_clock(
    dual_store: DualStore,
    storage: DiskStorage,
    outbox: OutboxNotifier,
    log_sink: LogSink,
    settings: BackupSettings,
) -> None:
    outcome = await _coordinator(
        dual_store, storage, outbox, log_sink, settings
    ).run_backup()

    manifest = load_bundle(storage.read(outcome.bundle_key))
    assert outcome.bundle_key == "backups/backup-2025-06-01.zip"
    assert manifest.snapshot_at == FIXED_NOW
    assert manifest.metadata["generated_at"] == FIXED_NOW.isoformat()
