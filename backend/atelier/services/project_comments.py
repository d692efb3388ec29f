"""Threaded project discussion: the one comment stream that may be edited and deleted."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import hooks, models, notify, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely

# purpose: project comments with one level of replies, urgency flag and author/admin edits
# inputs: session handle, PrincipalContext, project ids, comment payloads
# outputs: ProjectComment rows, formatted comment dicts, owner notification after add
# status: active
# depends_on: atelier.notify

MAX_REF_LENGTH = 100
MAX_COMMENT_LENGTH = 65535
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

Comment = models.ProjectComment


def _clean_text(text: str | None) -> str:
    cleaned = text.strip() if isinstance(text, str) else ""
    if not cleaned:
        raise ValidationError("Comment text is required.")
    if len(cleaned) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment exceeds maximum length of {MAX_COMMENT_LENGTH} characters.")
    return cleaned


def _clean_ref(value: Any, label: str) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    if len(cleaned) > MAX_REF_LENGTH:
        raise ValidationError(f"{label} exceeds maximum length of {MAX_REF_LENGTH} characters.")
    return cleaned or None


def _require_commenter(db: Session, ctx: PrincipalContext, project_id) -> models.Project:
    if ctx.is_admin:
        project = rbac.resolve_project(db, ctx, project_id)
        if project is None:
            raise AuthorizationError("Project not found or access denied")
        return project
    return rbac.require_project_edit(db, ctx, project_id)


def _visible_comment(db: Session, ctx: PrincipalContext, comment_id) -> tuple[Comment, models.Project]:
    """Live comment plus its project; absent and foreign comments fail alike."""

    comment_id = rbac.coerce_id(comment_id)
    comment = db.get(Comment, comment_id) if comment_id else None
    project = None
    if comment is not None and comment.deleted_at is None:
        project = rbac.resolve_project(db, ctx, comment.project_id)
    if project is None:
        raise AuthorizationError("Comment not found or access denied")
    return comment, project


def _scoped(query, item_ref: str | None, video_ref: str | None):
    query = query.filter(Comment.item_ref == item_ref if item_ref is not None else Comment.item_ref.is_(None))
    return query.filter(Comment.video_ref == video_ref if video_ref is not None else Comment.video_ref.is_(None))


def add_comment(
    db: Session,
    ctx: PrincipalContext,
    project_id: int,
    comment_text: str | None,
    *,
    is_urgent: bool = False,
    parent_comment_id: int | None = None,
    item_ref: str | None = None,
    video_ref: str | None = None,
) -> Comment:
    text = _clean_text(comment_text)
    item_ref = _clean_ref(item_ref, "Item reference")
    video_ref = _clean_ref(video_ref, "Video reference")
    project = _require_commenter(db, ctx, project_id)

    parent_id = rbac.coerce_id(parent_comment_id)
    if parent_id is not None:
        parent = db.get(Comment, parent_id)
        if parent is None or parent.deleted_at is not None or parent.project_id != project.id:
            raise ValidationError("Parent comment not found in this project.")
        if parent.parent_comment_id is not None:
            raise ValidationError("Replies can only be made to top-level comments.")

    now = models.utcnow()
    comment = Comment(
        project_id=project.id,
        user_id=ctx.user_id,
        item_ref=item_ref,
        video_ref=video_ref,
        parent_comment_id=parent_id,
        is_urgent=bool(is_urgent),
        comment_text=text,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)

    owner = db.get(models.User, project.board.owner_user_id)
    if owner is not None and owner.id != ctx.user_id:
        subject = f"{'[Urgent] ' if comment.is_urgent else ''}New comment on {project.name}"
        hooks.add_post_commit_hook(db, notify.dispatch, owner.email, subject, text)

    hooks.commit(db)
    db.refresh(comment)
    record_event_safely(
        db,
        ctx,
        EventType.PROJECT_COMMENT_ADDED,
        ObjectType.PROJECT_COMMENT,
        object_id=comment.id,
        board_id=project.board_id,
        payload={
            "project_id": project.id,
            "parent_comment_id": parent_id,
            "is_urgent": comment.is_urgent,
        },
    )
    return comment


def list_comments(
    db: Session,
    ctx: PrincipalContext,
    project_id: int,
    *,
    item_ref: str | None = None,
    video_ref: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[Comment]:
    """Urgent first, then top-level before replies, then oldest first."""

    project = rbac.require_project_view(db, ctx, project_id)
    limit = max(1, min(int(limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE))
    query = db.query(Comment).filter(Comment.project_id == project.id, Comment.deleted_at.is_(None))
    query = _scoped(query, item_ref, video_ref)
    is_reply = sa.case((Comment.parent_comment_id.is_(None), 0), else_=1)
    return (
        query.order_by(Comment.is_urgent.desc(), is_reply, Comment.created_at.asc(), Comment.id.asc())
        .offset(max(0, int(offset or 0)))
        .limit(limit)
        .all()
    )


def count_comments(
    db: Session,
    ctx: PrincipalContext,
    project_id: int,
    *,
    item_ref: str | None = None,
    video_ref: str | None = None,
) -> int:
    project = rbac.require_project_view(db, ctx, project_id)
    query = db.query(sa.func.count(Comment.id)).filter(
        Comment.project_id == project.id,
        Comment.deleted_at.is_(None),
    )
    return int(_scoped(query, item_ref, video_ref).scalar() or 0)


def _require_author_or_admin(ctx: PrincipalContext, comment: Comment) -> None:
    if comment.user_id != ctx.user_id and not ctx.is_admin:
        raise AuthorizationError("Only the author can change this comment.")


def update_comment(db: Session, ctx: PrincipalContext, comment_id: int, comment_text: str | None) -> Comment:
    comment, project = _visible_comment(db, ctx, comment_id)
    _require_author_or_admin(ctx, comment)
    text = _clean_text(comment_text)
    if comment.comment_text == text:
        return comment
    comment.comment_text = text
    comment.updated_at = models.utcnow()
    hooks.commit(db)
    db.refresh(comment)
    record_event_safely(
        db,
        ctx,
        EventType.PROJECT_COMMENT_UPDATED,
        ObjectType.PROJECT_COMMENT,
        object_id=comment.id,
        board_id=project.board_id,
        payload={"project_id": project.id},
    )
    return comment


def delete_comment(db: Session, ctx: PrincipalContext, comment_id: int) -> None:
    comment, project = _visible_comment(db, ctx, comment_id)
    _require_author_or_admin(ctx, comment)
    comment.deleted_at = models.utcnow()
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.PROJECT_COMMENT_DELETED,
        ObjectType.PROJECT_COMMENT,
        object_id=comment.id,
        board_id=project.board_id,
        payload={"project_id": project.id},
    )


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def time_ago(created_at: datetime | None, now: datetime | None = None) -> str:
    created_at = _as_utc(created_at)
    if created_at is None:
        return ""
    seconds = int(((now or models.utcnow()) - created_at).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return _ago(seconds // 60, "minute")
    if seconds < 86400:
        return _ago(seconds // 3600, "hour")
    if seconds < 604800:
        return _ago(seconds // 86400, "day")
    return created_at.date().isoformat()


def _ago(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_comment(comment: Comment, ctx: PrincipalContext) -> dict[str, Any]:
    author = comment.author
    may_change = comment.user_id == ctx.user_id or ctx.is_admin
    return {
        "id": comment.id,
        "project_id": comment.project_id,
        "item_ref": comment.item_ref,
        "video_ref": comment.video_ref,
        "user_id": comment.user_id,
        "user_name": (author.display_name or author.email) if author else "Unknown",
        "comment_text": comment.comment_text,
        "is_urgent": bool(comment.is_urgent),
        "parent_comment_id": comment.parent_comment_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
        "time_ago": time_ago(comment.created_at),
        "was_edited": _as_utc(comment.updated_at) != _as_utc(comment.created_at),
        "can_edit": may_change,
        "can_delete": may_change,
    }
