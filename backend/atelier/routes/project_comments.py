from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import project_comments as comment_service
from . import ok

router = APIRouter(prefix="/api", tags=["project-comments"])


@router.post("/projects/{project_id}/comments")
def add_project_comment(
    project_id: int,
    data: schemas.ProjectCommentCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comment = comment_service.add_comment(
        db,
        ctx,
        project_id,
        data.comment_text,
        is_urgent=data.is_urgent,
        parent_comment_id=data.parent_comment_id,
        item_ref=data.item_ref,
        video_ref=data.video_ref,
    )
    return ok("Comment added.", comment=comment_service.format_comment(comment, ctx))


@router.get("/projects/{project_id}/comments")
async def list_project_comments(
    project_id: int,
    item_ref: Optional[str] = None,
    video_ref: Optional[str] = None,
    limit: int = comment_service.DEFAULT_PAGE_SIZE,
    offset: int = 0,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comments = comment_service.list_comments(
        db, ctx, project_id, item_ref=item_ref, video_ref=video_ref, limit=limit, offset=offset
    )
    total = comment_service.count_comments(db, ctx, project_id, item_ref=item_ref, video_ref=video_ref)
    return ok(
        comments=[comment_service.format_comment(comment, ctx) for comment in comments],
        total=total,
    )


@router.patch("/project-comments/{comment_id}")
async def update_project_comment(
    comment_id: int,
    data: schemas.ProjectCommentUpdate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comment = comment_service.update_comment(db, ctx, comment_id, data.comment_text)
    return ok("Comment updated.", comment=comment_service.format_comment(comment, ctx))


@router.delete("/project-comments/{comment_id}")
async def delete_project_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    comment_service.delete_comment(db, ctx, comment_id)
    return ok("Comment deleted.", comment_id=comment_id)
