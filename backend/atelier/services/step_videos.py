"""Production-step video evidence shared by suppliers and operators (steps 4-6)."""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely
from .video_links import clean_links, insert_next_version, links_view

# purpose: one version sequence per (item, step) fed by either a supplier or an operator
# inputs: session handle, PrincipalContext, item id, step number 4-6, URL list, optional note
# outputs: TimelineStepVideoSubmission rows; ascending read views with derived source
# status: active

VIDEO_STEPS = (4, 5, 6)
MAX_NOTE_LENGTH = 2000

Submission = models.TimelineStepVideoSubmission


def check_video_step(step_number) -> int:
    number = rbac.coerce_id(step_number)
    if number not in VIDEO_STEPS:
        raise ValidationError("Video evidence is only allowed for Steps 4, 5, and 6.")
    return number


def _clean_note(note: str | None) -> str | None:
    cleaned = (note or "").strip()
    if len(cleaned) > MAX_NOTE_LENGTH:
        raise ValidationError(f"Note exceeds maximum length of {MAX_NOTE_LENGTH} characters.")
    return cleaned or None


def _next_version(db: Session, item_id: int, step_number: int) -> int:
    current = (
        db.query(sa.func.coalesce(sa.func.max(Submission.version), 0))
        .filter(Submission.item_id == item_id, Submission.step_number == step_number)
        .scalar()
    )
    return int(current or 0) + 1


def _submit(
    db: Session,
    ctx: PrincipalContext,
    item: models.Item,
    step_number: int,
    links: list[tuple[str, str]],
    note: str | None,
    *,
    supplier_id: int | None = None,
    operator_id: int | None = None,
) -> Submission:
    def build(version: int) -> Submission:
        submission = Submission(
            item_id=item.id,
            step_number=step_number,
            supplier_id=supplier_id,
            operator_id=operator_id,
            version=version,
            optional_note=note,
            created_at=models.utcnow(),
        )
        for position, (provider, url) in enumerate(links):
            submission.links.append(models.TimelineStepVideoLink(provider=provider, url=url, sort_order=position))
        return submission

    submission = insert_next_version(db, lambda: _next_version(db, item.id, step_number), build)
    hooks.commit(db)
    db.refresh(submission)
    return submission


def submit_supplier(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_number: int,
    urls: list[Any],
    optional_note: str | None = None,
) -> Submission:
    number = check_video_step(step_number)
    links = clean_links(urls)
    note = _clean_note(optional_note)
    if not ctx.is_supplier:
        raise AuthorizationError("Only suppliers can submit step videos.")
    resolved = rbac.resolve_item_audience(db, ctx, item_id)
    if resolved is None or resolved[1] is not rbac.ItemAudience.SUPPLIER:
        raise AuthorizationError("Item not found or access denied")
    item = resolved[0]

    submission = _submit(db, ctx, item, number, links, note, supplier_id=ctx.user_id)
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_STEP_VIDEO_SUBMITTED,
        ObjectType.ITEM,
        object_id=submission.id,
        item_id=item.id,
        payload={
            "item_id": item.id,
            "step_number": number,
            "supplier_id": ctx.user_id,
            "version": submission.version,
        },
    )
    return submission


def submit_operator(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_number: int,
    urls: list[Any],
    optional_note: str | None = None,
) -> Submission:
    number = check_video_step(step_number)
    links = clean_links(urls)
    note = _clean_note(optional_note)
    if not ctx.is_operator:
        raise AuthorizationError("Only operators can add step videos.")
    item, _audience = rbac.require_item_audience(db, ctx, item_id)

    submission = _submit(db, ctx, item, number, links, note, operator_id=ctx.user_id)
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_STEP_VIDEO_ADDED_BY_OPERATOR,
        ObjectType.ITEM,
        object_id=submission.id,
        item_id=item.id,
        payload={
            "item_id": item.id,
            "step_number": number,
            "operator_id": ctx.user_id,
            "version": submission.version,
        },
    )
    return submission


def get_submissions_for_step(
    db: Session,
    item_id,
    step_number,
    *,
    for_designer: bool = False,
) -> list[dict[str, Any]]:
    item_id, number = rbac.coerce_id(item_id), rbac.coerce_id(step_number)
    if item_id is None or number not in VIDEO_STEPS:
        return []
    rows = (
        db.query(Submission)
        .filter(Submission.item_id == item_id, Submission.step_number == number)
        .order_by(Submission.version.asc())
        .all()
    )
    views = []
    for row in rows:
        view = {
            "submission_id": row.id,
            "version": row.version,
            "source": row.source,
            "optional_note": row.optional_note,
            "created_at": row.created_at.isoformat() if row.created_at else None,
            "links": links_view(row.links),
        }
        if not for_designer:
            view["supplier_id"] = row.supplier_id
            view["operator_id"] = row.operator_id
        views.append(view)
    return views


def view_for_step(db: Session, ctx: PrincipalContext, item_id: int, step_number: int) -> list[dict[str, Any]]:
    number = check_video_step(step_number)
    item, audience = rbac.require_item_audience(db, ctx, item_id)
    return get_submissions_for_step(db, item.id, number, for_designer=audience is rbac.ItemAudience.DESIGNER)
