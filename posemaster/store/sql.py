from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from posemaster.db.base import Base
from posemaster.db.models import PoseRow
from posemaster.errors import PersistenceError
from posemaster.models import Keypoint, PoseRecord
from posemaster.store.base import PoseStore

logger = logging.getLogger(__name__)


class SqlPoseStore(PoseStore):
    """Pose store backed by SQLAlchemy's async engine.

    Defaults to a SQLite file through ``aiosqlite``; any async URL works
    (``postgresql+asyncpg://...`` with the ``postgres`` extra installed).
    """

    def __init__(self, url: str = "sqlite+aiosqlite:///posemaster.db") -> None:
        self._engine = create_async_engine(url, echo=False)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def _auto_session(self) -> AsyncIterator[AsyncSession]:
        """Yield an auto-committing session that is closed after use."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise PersistenceError(f"Constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def reset(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await self.init()

    async def close(self) -> None:
        await self._engine.dispose()

    # ── Writes ───────────────────────────────────────────────────────

    async def insert_pose(self, pose: PoseRecord) -> PoseRecord:
        async with self._auto_session() as s:
            row = PoseRow(
                id=pose.id,
                created_at=pose.created_at,
                pose_name=pose.pose_name,
                confidence=pose.confidence,
                keypoints=[kp.to_dict() for kp in pose.keypoints],
            )
            s.add(row)
            await s.flush()
        logger.debug("Inserted pose %s", pose.id)
        return pose

    async def delete_pose(self, pose_id: str) -> None:
        async with self._auto_session() as s:
            await s.execute(delete(PoseRow).where(PoseRow.id == pose_id))

    # ── Reads ────────────────────────────────────────────────────────

    async def get_pose(self, pose_id: str) -> PoseRecord | None:
        async with self._auto_session() as s:
            stmt = select(PoseRow).where(PoseRow.id == pose_id)
            row = (await s.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _pose_from_orm(row)

    async def list_poses(self) -> list[PoseRecord]:
        async with self._auto_session() as s:
            stmt = select(PoseRow).order_by(PoseRow.seq)
            rows = list((await s.execute(stmt)).scalars().all())
        return [_pose_from_orm(r) for r in rows]

    async def count_poses(self) -> int:
        async with self._auto_session() as s:
            return (await s.execute(select(func.count(PoseRow.seq)))).scalar() or 0

    async def mean_confidence(self) -> float:
        async with self._auto_session() as s:
            avg = (await s.execute(select(func.avg(PoseRow.confidence)))).scalar()
        return float(avg) if avg is not None else 0.0


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _pose_from_orm(row: PoseRow) -> PoseRecord:
    return PoseRecord(
        id=row.id,
        created_at=_as_utc(row.created_at),
        pose_name=row.pose_name,
        confidence=row.confidence,
        keypoints=tuple(Keypoint.from_dict(kp) for kp in row.keypoints),
    )
