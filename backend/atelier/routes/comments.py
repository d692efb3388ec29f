from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import comments as comment_service
from . import dump, ok

router = APIRouter(prefix="/api", tags=["comments"])


@router.post("/items/{item_id}/timeline/steps/{step_number}/comments")
async def add_step_comment(
    item_id: int,
    step_number: int,
    data: schemas.StepCommentCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comment = comment_service.add_step_comment(
        db, ctx, item_id, step_number, data.comment_text, data.media_version
    )
    return ok("Comment added.", comment=dump(schemas.StepCommentOut, comment))


@router.get("/items/{item_id}/timeline/steps/{step_number}/comments")
async def list_step_comments(
    item_id: int,
    step_number: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comments = comment_service.list_step_comments(db, ctx, item_id, step_number)
    return ok(comments=dump(schemas.StepCommentOut, comments))


@router.post("/evidence/{evidence_id}/comments")
async def add_evidence_comment(
    evidence_id: int,
    data: schemas.EvidenceCommentCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comment = comment_service.add_evidence_comment(db, ctx, evidence_id, data.comment_text)
    return ok("Comment added.", comment=dump(schemas.EvidenceCommentOut, comment))


@router.get("/evidence/{evidence_id}/comments")
async def list_evidence_comments(
    evidence_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comments = comment_service.list_comments_for_evidence(db, ctx, evidence_id)
    return ok(comments=dump(schemas.EvidenceCommentOut, comments))


@router.get("/evidence-comments")
async def list_evidence_comments_batch(
    evidence_ids: list[int] = Query(default=[]),
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    by_evidence = comment_service.list_comments_for_evidence_batch(db, ctx, evidence_ids)
    return ok(
        comments={
            str(evidence_id): dump(schemas.EvidenceCommentOut, rows)
            for evidence_id, rows in by_evidence.items()
        }
    )
