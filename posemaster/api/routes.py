from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from posemaster.api.schemas import (
    BackupResponse,
    ErrorResponse,
    ExtractRequest,
    ExtractResponse,
    LogEntryOut,
    PoseOut,
    StatsResponse,
)
from posemaster.facade.core import PoseMaster
from posemaster.models import PoseRecord

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def get_posemaster(request: Request) -> PoseMaster:
    return request.app.state.posemaster


def _extracted(pose: PoseRecord) -> ExtractResponse:
    return ExtractResponse(id=pose.id, data=PoseOut.from_record(pose))


@router.post("/extract-pose", response_model=ExtractResponse, responses=_ERRORS)
async def extract_pose(
    body: ExtractRequest,
    pm: PoseMaster = Depends(get_posemaster),
) -> ExtractResponse:
    """Extract a pose from a base64 image and store the pose/image pair."""
    pose = await pm.submit_base64(body.image_base64, body.mime_type)
    return _extracted(pose)


@router.post("/extract-pose/raw", response_model=ExtractResponse, responses=_ERRORS)
async def extract_pose_raw(
    request: Request,
    pm: PoseMaster = Depends(get_posemaster),
) -> ExtractResponse:
    """Same as ``/extract-pose`` but takes the image as the request body."""
    data = await request.body()
    pose = await pm.submit(data, request.headers.get("content-type", ""))
    return _extracted(pose)


@router.post(
    "/backups",
    response_model=BackupResponse,
    responses={409: {"model": ErrorResponse}},
)
async def trigger_backup(pm: PoseMaster = Depends(get_posemaster)) -> BackupResponse:
    outcome = await pm.run_backup(trigger="manual")
    return BackupResponse.from_outcome(outcome)


@router.get("/stats", response_model=StatsResponse)
async def stats(pm: PoseMaster = Depends(get_posemaster)) -> StatsResponse:
    return StatsResponse.from_stats(await pm.stats())


@router.get("/logs", response_model=list[LogEntryOut])
async def logs(
    limit: int = Query(50, ge=0, le=1000),
    pm: PoseMaster = Depends(get_posemaster),
) -> list[LogEntryOut]:
    return [LogEntryOut.from_entry(e) for e in pm.recent_logs(limit)]
