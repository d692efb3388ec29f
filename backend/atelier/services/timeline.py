"""Six-step item timeline: creation, operator transitions and the derived delay view."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely

# purpose: one locked six-step timeline per item; operators move steps forward, everyone else reads
# inputs: session handle, PrincipalContext, item ids and step numbers 1-6
# outputs: ItemTimeline/ItemTimelineStep rows, read-only timeline dicts with derived "delayed"
# status: active

STEP_LABELS: dict[int, str] = {
    1: "Design & Specifications",
    2: "Technical Review & Documentation",
    3: "Pre-Production Approval",
    4: "Production / Fabrication",
    5: "Quality Review & Packing",
    6: "Ready for Delivery",
}
STATUS_DELAYED = "delayed"
SUBMISSION_STEP_STATUSES = (models.StepStatus.IN_PROGRESS.value, models.StepStatus.COMPLETED.value)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _check_step_number(step_number) -> int:
    number = rbac.coerce_id(step_number)
    if number is None or number not in STEP_LABELS:
        raise ValidationError("Invalid step number.")
    return number


def _require_operator(ctx: PrincipalContext) -> None:
    if not ctx.is_operator:
        raise AuthorizationError("Only operators can change timeline steps.")


def get_timeline_row(db: Session, item_id: int) -> models.ItemTimeline | None:
    return db.query(models.ItemTimeline).filter(models.ItemTimeline.item_id == item_id).first()


def create_timeline(db: Session, item: models.Item) -> models.ItemTimeline:
    """Add a timeline with six pending steps to the session (caller commits)."""

    timeline = models.ItemTimeline(item_id=item.id, created_at=models.utcnow())
    for number, label in STEP_LABELS.items():
        timeline.steps.append(
            models.ItemTimelineStep(
                step_number=number,
                label=label,
                status=models.StepStatus.PENDING.value,
                evidence_required=True,
            )
        )
    db.add(timeline)
    db.flush()
    return timeline


def log_timeline_created(db: Session, ctx: PrincipalContext, item_id: int, timeline_id: int) -> None:
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_CREATED,
        ObjectType.ITEM,
        object_id=item_id,
        item_id=item_id,
        payload={"item_id": item_id, "timeline_id": timeline_id, "step_count": len(STEP_LABELS)},
    )


def ensure_timeline(db: Session, ctx: PrincipalContext, item: models.Item) -> models.ItemTimeline:
    """Return the item's timeline, creating and logging it on mutation paths only."""

    timeline = get_timeline_row(db, item.id)
    if timeline is not None:
        return timeline
    timeline = create_timeline(db, item)
    hooks.commit(db)
    log_timeline_created(db, ctx, item.id, timeline.id)
    return timeline


def get_step(db: Session, item_id: int, step_number: int) -> models.ItemTimelineStep | None:
    return (
        db.query(models.ItemTimelineStep)
        .join(models.ItemTimeline, models.ItemTimeline.id == models.ItemTimelineStep.timeline_id)
        .filter(models.ItemTimeline.item_id == item_id, models.ItemTimelineStep.step_number == step_number)
        .first()
    )


def step_allows_submission(step: models.ItemTimelineStep | None) -> bool:
    return step is not None and step.status in SUBMISSION_STEP_STATUSES


def step_view(step: models.ItemTimelineStep, now: datetime | None = None) -> dict[str, Any]:
    now = now or models.utcnow()
    expected_by = _as_utc(step.expected_by)
    is_delayed = bool(expected_by and step.completed_at is None and expected_by < now)
    return {
        "step_id": step.id,
        "step_number": step.step_number,
        "label": step.label,
        "status": step.status,
        "display_status": STATUS_DELAYED if is_delayed else step.status,
        "started_at": _iso(step.started_at),
        "completed_at": _iso(step.completed_at),
        "expected_by": _iso(step.expected_by),
        "is_delayed": is_delayed,
        "evidence_required": bool(step.evidence_required),
        "evidence_verified_at": _iso(step.evidence_verified_at),
    }


def get_timeline(db: Session, ctx: PrincipalContext, item_id: int) -> dict[str, Any]:
    """Read-only timeline view. A missing timeline renders as six pending steps."""

    item, _audience = rbac.require_item_audience(db, ctx, item_id)
    timeline = get_timeline_row(db, item.id)
    if timeline is None:
        steps = [
            {
                "step_id": None,
                "step_number": number,
                "label": label,
                "status": models.StepStatus.PENDING.value,
                "display_status": models.StepStatus.PENDING.value,
                "started_at": None,
                "completed_at": None,
                "expected_by": None,
                "is_delayed": False,
                "evidence_required": True,
                "evidence_verified_at": None,
            }
            for number, label in STEP_LABELS.items()
        ]
        return {"timeline_id": None, "item_id": item.id, "created_at": None, "steps": steps}
    now = models.utcnow()
    return {
        "timeline_id": timeline.id,
        "item_id": item.id,
        "created_at": _iso(timeline.created_at),
        "steps": [step_view(step, now) for step in timeline.steps],
    }


def _operator_step(db: Session, ctx: PrincipalContext, item_id, step_number) -> tuple[models.Item, models.ItemTimelineStep]:
    _require_operator(ctx)
    number = _check_step_number(step_number)
    item, _audience = rbac.require_item_audience(db, ctx, item_id)
    ensure_timeline(db, ctx, item)
    step = get_step(db, item.id, number)
    if step is None:
        raise NotFoundError("Step not found.")
    return item, step


def start_step(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_number: int,
    *,
    expected_by: datetime | None = None,
) -> models.ItemTimelineStep:
    item, step = _operator_step(db, ctx, item_id, step_number)
    if step.status != models.StepStatus.PENDING.value:
        raise ConflictError("Step is not pending.")
    now = models.utcnow()
    step.status = models.StepStatus.IN_PROGRESS.value
    step.started_at = now
    if expected_by is not None:
        step.expected_by = expected_by
    hooks.commit(db)
    db.refresh(step)
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_STEP_STARTED,
        ObjectType.ITEM,
        object_id=step.id,
        item_id=item.id,
        payload={"step_id": step.id, "step_number": step.step_number, "operator_user_id": ctx.user_id},
    )
    return step


def complete_step(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_number: int,
    *,
    evidence_verified_override: bool = False,
) -> models.ItemTimelineStep:
    if evidence_verified_override and not ctx.is_admin:
        raise AuthorizationError("Only administrators can override evidence verification.")
    item, step = _operator_step(db, ctx, item_id, step_number)
    if step.status != models.StepStatus.IN_PROGRESS.value:
        raise ConflictError("Step is not in progress.")
    evidence_ok = evidence_verified_override or not step.evidence_required or step.evidence_verified_at is not None
    if not evidence_ok:
        raise ConflictError("Evidence required to complete this step.")
    now = models.utcnow()
    step.status = models.StepStatus.COMPLETED.value
    step.completed_at = now
    if evidence_verified_override and step.evidence_verified_at is None:
        step.evidence_verified_at = now
        step.evidence_verified_by = ctx.user_id
    hooks.commit(db)
    db.refresh(step)
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_STEP_COMPLETED,
        ObjectType.ITEM,
        object_id=step.id,
        item_id=item.id,
        payload={
            "step_id": step.id,
            "step_number": step.step_number,
            "operator_user_id": ctx.user_id,
            "evidence_verified_at": step.evidence_verified_at,
        },
    )
    return step


def set_evidence_verified(db: Session, ctx: PrincipalContext, item_id: int, step_number: int) -> models.ItemTimelineStep:
    item, step = _operator_step(db, ctx, item_id, step_number)
    step.evidence_verified_at = models.utcnow()
    step.evidence_verified_by = ctx.user_id
    hooks.commit(db)
    db.refresh(step)
    record_event_safely(
        db,
        ctx,
        EventType.TIMELINE_STEP_EVIDENCE_VERIFIED,
        ObjectType.ITEM,
        object_id=step.id,
        item_id=item.id,
        payload={"step_id": step.id, "step_number": step.step_number},
    )
    return step
