"""Immutable feedback: designer comments on production steps and comments on media evidence."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely
from .media_evidence import visible_evidence

# purpose: insert-only comment streams; there is no edit or delete path for either kind
# inputs: session handle, PrincipalContext, item/step or evidence identifiers, comment text
# outputs: TimelineStepComment and EvidenceComment rows, list views
# status: active

COMMENT_STEPS = (4, 5, 6)
MAX_COMMENT_LENGTH = 65535


def _clean_text(text: str | None) -> str:
    cleaned = text.strip() if isinstance(text, str) else ""
    if not cleaned:
        raise ValidationError("Comment text is required.")
    return cleaned


def add_step_comment(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_number: int,
    comment_text: str | None,
    media_version: int | None = None,
) -> models.TimelineStepComment:
    number = rbac.coerce_id(step_number)
    if number not in COMMENT_STEPS:
        raise ValidationError("Comments only for Steps 4, 5, and 6.")
    text = _clean_text(comment_text)
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment exceeds maximum length of {MAX_COMMENT_LENGTH} characters.")
    item, audience = rbac.require_item_audience(db, ctx, item_id)
    if audience is not rbac.ItemAudience.DESIGNER and not ctx.is_admin:
        raise AuthorizationError("Only the item's designer can comment on production steps.")

    comment = models.TimelineStepComment(
        item_id=item.id,
        step_number=number,
        designer_id=ctx.user_id,
        media_version=rbac.coerce_id(media_version),
        comment_text=text,
        created_at=models.utcnow(),
    )
    db.add(comment)
    hooks.commit(db)
    db.refresh(comment)
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_STEP_COMMENT_ADDED,
        ObjectType.ITEM,
        object_id=comment.id,
        item_id=item.id,
        payload={
            "item_id": item.id,
            "step_number": number,
            "designer_id": ctx.user_id,
            "media_version": comment.media_version,
        },
    )
    return comment


def list_step_comments(db: Session, ctx: PrincipalContext, item_id: int, step_number: int) -> list[models.TimelineStepComment]:
    number = rbac.coerce_id(step_number)
    if number not in COMMENT_STEPS:
        raise ValidationError("Comments only for Steps 4, 5, and 6.")
    item, _audience = rbac.require_item_audience(db, ctx, item_id)
    return (
        db.query(models.TimelineStepComment)
        .filter(
            models.TimelineStepComment.item_id == item.id,
            models.TimelineStepComment.step_number == number,
        )
        .order_by(models.TimelineStepComment.created_at.desc(), models.TimelineStepComment.id.desc())
        .all()
    )


def add_evidence_comment(
    db: Session,
    ctx: PrincipalContext,
    evidence_id: int,
    comment_text: str | None,
) -> models.EvidenceComment:
    text = _clean_text(comment_text)[:MAX_COMMENT_LENGTH]
    evidence, _audience = visible_evidence(db, ctx, evidence_id)
    comment = models.EvidenceComment(
        evidence_id=evidence.id,
        user_id=ctx.user_id,
        comment_text=text,
        created_at=models.utcnow(),
    )
    db.add(comment)
    hooks.commit(db)
    db.refresh(comment)
    record_event_safely(
        db,
        ctx,
        EventType.EVIDENCE_COMMENT_ADDED,
        ObjectType.EVIDENCE,
        object_id=evidence.id,
        item_id=evidence.item_id,
        payload={"comment_id": comment.id},
    )
    return comment


def list_comments_for_evidence(db: Session, ctx: PrincipalContext, evidence_id: int) -> list[models.EvidenceComment]:
    evidence, _audience = visible_evidence(db, ctx, evidence_id)
    return (
        db.query(models.EvidenceComment)
        .filter(models.EvidenceComment.evidence_id == evidence.id)
        .order_by(models.EvidenceComment.created_at.asc(), models.EvidenceComment.id.asc())
        .all()
    )


def list_comments_for_evidence_batch(
    db: Session,
    ctx: PrincipalContext,
    evidence_ids: Iterable[Any],
) -> dict[int, list[models.EvidenceComment]]:
    """Comments for several evidence rows at once; every id must be visible."""

    ids = []
    for raw in evidence_ids:
        evidence_id = rbac.coerce_id(raw)
        if evidence_id is not None and evidence_id not in ids:
            visible_evidence(db, ctx, evidence_id)
            ids.append(evidence_id)
    by_evidence: dict[int, list[models.EvidenceComment]] = {evidence_id: [] for evidence_id in ids}
    if not ids:
        return by_evidence
    rows = (
        db.query(models.EvidenceComment)
        .filter(models.EvidenceComment.evidence_id.in_(ids))
        .order_by(
            models.EvidenceComment.evidence_id.asc(),
            models.EvidenceComment.created_at.asc(),
            models.EvidenceComment.id.asc(),
        )
        .all()
    )
    for row in rows:
        by_evidence[row.evidence_id].append(row)
    return by_evidence
