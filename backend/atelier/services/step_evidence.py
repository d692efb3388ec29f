"""Supplier step evidence: versioned, append-only video link submissions per timeline step."""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ConflictError, NotFoundError
from ..eventlog import EventType, ObjectType, record_event_safely
from . import timeline as timeline_service
from .video_links import clean_links, insert_next_version, links_view

# purpose: accept 1-3 provider links from a routed supplier as version N+1 of (item, step, supplier)
# inputs: session handle, PrincipalContext, item id, timeline step id, URL list, optional bid id
# outputs: StepEvidenceSubmission rows with ordered links; read views per audience
# status: active
# depends_on: atelier.services.video_links

Submission = models.StepEvidenceSubmission


def _step_for_item(db: Session, item_id: int, step_id) -> models.ItemTimelineStep | None:
    step_id = rbac.coerce_id(step_id)
    if step_id is None:
        return None
    return (
        db.query(models.ItemTimelineStep)
        .join(models.ItemTimeline, models.ItemTimeline.id == models.ItemTimelineStep.timeline_id)
        .filter(models.ItemTimelineStep.id == step_id, models.ItemTimeline.item_id == item_id)
        .first()
    )


def _next_version(db: Session, item_id: int, step_id: int, supplier_id: int) -> int:
    current = (
        db.query(sa.func.coalesce(sa.func.max(Submission.version), 0))
        .filter(
            Submission.item_id == item_id,
            Submission.timeline_step_id == step_id,
            Submission.supplier_id == supplier_id,
        )
        .scalar()
    )
    return int(current or 0) + 1


def submit(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_id: int,
    urls: list[Any],
    *,
    bid_id: int | None = None,
) -> Submission:
    links = clean_links(urls)
    if not ctx.is_supplier:
        raise AuthorizationError("Only suppliers can submit step evidence.")
    resolved = rbac.resolve_item_audience(db, ctx, item_id)
    if resolved is None or resolved[1] is not rbac.ItemAudience.SUPPLIER:
        raise AuthorizationError("Item not found or access denied")
    item = resolved[0]
    step = _step_for_item(db, item.id, step_id)
    if step is None:
        raise NotFoundError("Step not found.")
    if not timeline_service.step_allows_submission(step):
        raise ConflictError("Evidence can only be submitted for steps in progress or completed.")

    supplier_id = ctx.user_id
    bid_id = rbac.coerce_id(bid_id)

    def build(version: int) -> Submission:
        submission = Submission(
            item_id=item.id,
            timeline_step_id=step.id,
            supplier_id=supplier_id,
            bid_id=bid_id,
            version=version,
            link_count=len(links),
            created_at=models.utcnow(),
        )
        for position, (provider, url) in enumerate(links):
            submission.links.append(models.StepEvidenceLink(provider=provider, url=url, sort_order=position))
        return submission

    submission = insert_next_version(db, lambda: _next_version(db, item.id, step.id, supplier_id), build)
    hooks.commit(db)
    db.refresh(submission)
    record_event_safely(
        db,
        ctx,
        EventType.STEP_EVIDENCE_SUBMITTED,
        ObjectType.ITEM,
        object_id=submission.id,
        item_id=item.id,
        payload={
            "item_id": item.id,
            "timeline_step_id": step.id,
            "supplier_id": supplier_id,
            "bid_id": bid_id,
            "version": submission.version,
            "link_count": submission.link_count,
        },
    )
    return submission


def _submission_view(submission: Submission, *, include_supplier: bool = False) -> dict[str, Any]:
    view = {
        "submission_id": submission.id,
        "version": submission.version,
        "link_count": submission.link_count,
        "created_at": submission.created_at.isoformat() if submission.created_at else None,
        "links": links_view(submission.links),
    }
    if include_supplier:
        view["supplier_id"] = submission.supplier_id
    return view


def _for_supplier_step(db: Session, item_id, step_id, supplier_id):
    item_id, step_id, supplier_id = rbac.coerce_id(item_id), rbac.coerce_id(step_id), rbac.coerce_id(supplier_id)
    if item_id is None or step_id is None or supplier_id is None:
        return None
    return db.query(Submission).filter(
        Submission.item_id == item_id,
        Submission.timeline_step_id == step_id,
        Submission.supplier_id == supplier_id,
    )


def get_latest_for_supplier_step(db: Session, item_id, step_id, supplier_id) -> dict[str, Any] | None:
    query = _for_supplier_step(db, item_id, step_id, supplier_id)
    if query is None:
        return None
    submission = query.order_by(Submission.version.desc()).first()
    return _submission_view(submission) if submission else None


def get_all_for_supplier_step(db: Session, item_id, step_id, supplier_id) -> list[dict[str, Any]]:
    query = _for_supplier_step(db, item_id, step_id, supplier_id)
    if query is None:
        return []
    return [_submission_view(row) for row in query.order_by(Submission.version.asc()).all()]


def get_latest_by_item_for_supplier(db: Session, item_id, supplier_id) -> dict[int, dict[str, Any]]:
    """Latest submission per timeline step for one supplier, keyed by step id."""

    item_id, supplier_id = rbac.coerce_id(item_id), rbac.coerce_id(supplier_id)
    if item_id is None or supplier_id is None:
        return {}
    rows = (
        db.query(Submission)
        .filter(Submission.item_id == item_id, Submission.supplier_id == supplier_id)
        .order_by(Submission.timeline_step_id.asc(), Submission.version.desc())
        .all()
    )
    by_step: dict[int, dict[str, Any]] = {}
    for row in rows:
        by_step.setdefault(row.timeline_step_id, _submission_view(row))
    return by_step


def get_for_step_view(db: Session, item_id, step_id, *, for_designer: bool = False) -> dict[str, Any]:
    """Every submission for a step, oldest first. Designers do not see who submitted."""

    item_id, step_id = rbac.coerce_id(item_id), rbac.coerce_id(step_id)
    if item_id is None or step_id is None:
        return {"has_evidence": False, "submissions": []}
    rows = (
        db.query(Submission)
        .filter(Submission.item_id == item_id, Submission.timeline_step_id == step_id)
        .order_by(Submission.created_at.asc(), Submission.id.asc())
        .all()
    )
    return {
        "has_evidence": bool(rows),
        "submissions": [_submission_view(row, include_supplier=not for_designer) for row in rows],
    }


def get_steps_with_supplier_evidence(db: Session, item_id) -> set[int]:
    item_id = rbac.coerce_id(item_id)
    if item_id is None:
        return set()
    rows = db.query(Submission.timeline_step_id).filter(Submission.item_id == item_id).distinct().all()
    return {row[0] for row in rows}


def view_for_step(db: Session, ctx: PrincipalContext, item_id: int, step_id: int) -> dict[str, Any]:
    """Audience-aware read: suppliers see their own history, designers an anonymised view."""

    item, audience = rbac.require_item_audience(db, ctx, item_id)
    if audience is rbac.ItemAudience.SUPPLIER:
        submissions = get_all_for_supplier_step(db, item.id, step_id, ctx.user_id)
        return {"has_evidence": bool(submissions), "submissions": submissions}
    return get_for_step_view(db, item.id, step_id, for_designer=audience is rbac.ItemAudience.DESIGNER)
