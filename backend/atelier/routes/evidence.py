import io
import os

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import media_evidence, step_evidence, step_videos
from ..services.video_links import links_view
from . import ok

router = APIRouter(prefix="/api", tags=["evidence"])


@router.post("/items/{item_id}/steps/{step_id}/evidence")
async def submit_step_evidence(
    item_id: int,
    step_id: int,
    data: schemas.StepEvidenceSubmit,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    submission = step_evidence.submit(db, ctx, item_id, step_id, data.urls, bid_id=data.bid_id)
    return ok(
        "Evidence submitted.",
        submission_id=submission.id,
        version=submission.version,
        links=links_view(submission.links),
    )


@router.get("/items/{item_id}/steps/{step_id}/evidence")
async def view_step_evidence(
    item_id: int,
    step_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(**step_evidence.view_for_step(db, ctx, item_id, step_id))


@router.post("/items/{item_id}/timeline/steps/{step_number}/videos")
async def submit_step_videos(
    item_id: int,
    step_number: int,
    data: schemas.StepVideoSubmit,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    submission = step_videos.submit_supplier(db, ctx, item_id, step_number, data.urls, data.optional_note)
    return ok("Videos submitted.", submission_id=submission.id, version=submission.version)


@router.post("/items/{item_id}/timeline/steps/{step_number}/videos/operator")
async def add_operator_videos(
    item_id: int,
    step_number: int,
    data: schemas.StepVideoSubmit,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    submission = step_videos.submit_operator(db, ctx, item_id, step_number, data.urls, data.optional_note)
    return ok("Videos added.", submission_id=submission.id, version=submission.version)


@router.get("/items/{item_id}/timeline/steps/{step_number}/videos")
async def list_step_videos(
    item_id: int,
    step_number: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(submissions=step_videos.view_for_step(db, ctx, item_id, step_number))


@router.post("/items/{item_id}/media-evidence")
async def add_media_evidence(
    item_id: int,
    data: schemas.MediaEvidenceCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    evidence = media_evidence.add_evidence(
        db,
        ctx,
        item_id,
        data.step_id,
        data.media_type,
        file_path=data.file_path,
        youtube_url=data.youtube_url,
        hidden=data.hidden,
    )
    return ok("Evidence added.", evidence=media_evidence.evidence_view(evidence))


@router.get("/items/{item_id}/steps/{step_id}/media-evidence")
async def list_media_evidence(
    item_id: int,
    step_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(evidence=media_evidence.list_evidence_for_step(db, ctx, item_id, step_id))


@router.get("/evidence/{evidence_id}")
async def get_media_evidence(
    evidence_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(evidence=media_evidence.get_evidence(db, ctx, evidence_id))


@router.get("/evidence/{evidence_id}/view")
async def view_media_evidence_file(
    evidence_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    path, media_type = media_evidence.evidence_file(db, ctx, evidence_id)
    with open(path, "rb") as fh:
        data = fh.read()
    return StreamingResponse(
        io.BytesIO(data),
        media_type=media_type,
        headers={"Content-Disposition": f"inline; filename={os.path.basename(path)}"},
    )
