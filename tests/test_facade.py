from __future__ import annotations

from pathlib import Path

import pytest

from posemaster import PoseMaster
from posemaster.errors import InvalidInput
from posemaster.estimation.litellm import LiteLLMPoseEstimator
from posemaster.models import LogLevel
from posemaster.notify.outbox import OutboxNotifier
from posemaster.storage.disk import DiskStorage
from posemaster.store.memory import InMemoryImageStore, InMemoryPoseStore
from tests.conftest import PNG_BYTES, FakeEstimator


@pytest.fixture()
async def pm(tmp_path: Path):
    pm = PoseMaster(
        pose_store=InMemoryPoseStore(),
        image_store=InMemoryImageStore(),
        storage=DiskStorage(str(tmp_path)),
        estimator=FakeEstimator(),
        notifier=OutboxNotifier(),
    )
    await pm.init()
    yield pm
    await pm.close()


async def test_from_config(tmp_path: Path):
    pm = PoseMaster.from_config(
        {
            "storage": {"provider": "disk", "config": {"base_path": str(tmp_path)}},
            "estimator": {"provider": "openai", "api_key": "sk-test"},
            "backup": {"recipient": "ops@example.com"},
        }
    )
    assert isinstance(pm._gateway._estimator, LiteLLMPoseEstimator)
    assert pm.settings.recipient == "ops@example.com"
    assert pm.storage.exists("backups") is False


async def test_stats_track_extractions_and_backups(pm: PoseMaster):
    await pm.submit(PNG_BYTES, "image/png")
    await pm.submit(PNG_BYTES, "image/png")

    stats = await pm.stats()
    assert (stats.pose_count, stats.image_count) == (2, 2)
    assert stats.mean_confidence_pct == 92.0
    assert stats.last_backup_at is None

    outcome = await pm.run_backup()
    stats = await pm.stats()
    assert stats.last_backup_at == outcome.completed_at


async def test_pairs_share_ids(pm: PoseMaster):
    pose = await pm.submit_base64(
        "data:image/png;base64,iVBORw0KGgo=",
    )
    (image,) = await pm.list_images()
    assert image.pose_id == pose.id
    assert [p.id for p in await pm.list_poses()] == [pose.id]


async def test_rejected_submission_is_logged(pm: PoseMaster):
    with pytest.raises(InvalidInput):
        await pm.submit(b"", "image/png")
    (entry,) = pm.recent_logs(1)
    assert entry.level is LogLevel.WARN


async def test_close_stops_scheduler(pm: PoseMaster):
    pm.start_scheduler()
    assert pm._scheduler.running
    await pm.close()
    assert not pm._scheduler.running
