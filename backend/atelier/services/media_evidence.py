"""Operator-uploaded media evidence attached to timeline steps."""

from __future__ import annotations

import mimetypes
import os
import re
from typing import Any

from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely

# purpose: append-only image/pdf/youtube evidence per step; hidden rows never reach designers
# inputs: session handle, PrincipalContext, item id, step id, media descriptor
# outputs: TimelineStepEvidence rows and audience-shaped dicts
# status: active

MEDIA_TYPES = tuple(kind.value for kind in models.MediaType)
MAX_FILE_PATH_LENGTH = 500
_YOUTUBE_URL = re.compile(r"^(https?://)?(www\.)?(youtube\.com|youtu\.be)/", re.IGNORECASE)


def _step_belongs_to_item(db: Session, step_id, item_id: int) -> models.ItemTimelineStep | None:
    step_id = rbac.coerce_id(step_id)
    if step_id is None:
        return None
    return (
        db.query(models.ItemTimelineStep)
        .join(models.ItemTimeline, models.ItemTimeline.id == models.ItemTimelineStep.timeline_id)
        .filter(models.ItemTimelineStep.id == step_id, models.ItemTimeline.item_id == item_id)
        .first()
    )


def add_evidence(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    step_id: int,
    media_type: str,
    *,
    file_path: str | None = None,
    youtube_url: str | None = None,
    hidden: bool = False,
) -> models.TimelineStepEvidence:
    if media_type not in MEDIA_TYPES:
        raise ValidationError("Invalid media type. Allowed: " + ", ".join(MEDIA_TYPES))
    if media_type == models.MediaType.YOUTUBE.value:
        youtube_url = (youtube_url or "").strip()
        if not youtube_url or not _YOUTUBE_URL.match(youtube_url):
            raise ValidationError("Valid YouTube URL required.")
        file_path = None
    else:
        file_path = (file_path or "").strip()[:MAX_FILE_PATH_LENGTH]
        if not file_path:
            raise ValidationError("File path required for image/PDF evidence.")
        youtube_url = None

    if not ctx.is_operator:
        raise AuthorizationError("Only operators can add step evidence.")
    item, _audience = rbac.require_item_audience(db, ctx, item_id)
    step = _step_belongs_to_item(db, step_id, item.id)
    if step is None:
        raise ValidationError("Step does not belong to this item.")

    evidence = models.TimelineStepEvidence(
        item_id=item.id,
        step_id=step.id,
        media_type=media_type,
        file_path=file_path,
        youtube_url=youtube_url,
        created_by=ctx.user_id,
        hidden=bool(hidden),
        created_at=models.utcnow(),
    )
    db.add(evidence)
    hooks.commit(db)
    db.refresh(evidence)
    record_event_safely(
        db,
        ctx,
        EventType.EVIDENCE_ADDED,
        ObjectType.EVIDENCE,
        object_id=evidence.id,
        item_id=item.id,
        payload={"step_id": step.id, "media_type": media_type, "hidden": evidence.hidden},
    )
    return evidence


def evidence_view(evidence: models.TimelineStepEvidence, *, for_designer: bool = False) -> dict[str, Any]:
    """Audience-shaped evidence; designers never see a stored file path."""

    is_youtube = evidence.media_type == models.MediaType.YOUTUBE.value
    source = evidence.youtube_url if is_youtube else evidence.file_path
    view_url = source
    if for_designer and not is_youtube:
        view_url = f"/api/evidence/{evidence.id}/view"
    return {
        "id": evidence.id,
        "item_id": evidence.item_id,
        "step_id": evidence.step_id,
        "media_type": evidence.media_type,
        "created_at": evidence.created_at.isoformat() if evidence.created_at else None,
        "created_by": evidence.created_by,
        "hidden": bool(evidence.hidden),
        "view_url": view_url,
        "original_url": None if for_designer else source,
    }


def visible_evidence(
    db: Session,
    ctx: PrincipalContext,
    evidence_id,
) -> tuple[models.TimelineStepEvidence, rbac.ItemAudience]:
    """Return evidence the principal may see; hidden rows look missing to designers."""

    evidence_id = rbac.coerce_id(evidence_id)
    evidence = db.get(models.TimelineStepEvidence, evidence_id) if evidence_id else None
    resolved = rbac.resolve_item_audience(db, ctx, evidence.item_id) if evidence is not None else None
    if resolved is None:
        raise AuthorizationError("Evidence not found or access denied")
    _item, audience = resolved
    if evidence.hidden and audience is rbac.ItemAudience.DESIGNER:
        raise NotFoundError("Evidence not found.")
    return evidence, audience


def get_evidence(db: Session, ctx: PrincipalContext, evidence_id: int) -> dict[str, Any]:
    evidence, audience = visible_evidence(db, ctx, evidence_id)
    return evidence_view(evidence, for_designer=audience is rbac.ItemAudience.DESIGNER)


def list_evidence_for_step(db: Session, ctx: PrincipalContext, item_id: int, step_id: int) -> list[dict[str, Any]]:
    item, audience = rbac.require_item_audience(db, ctx, item_id)
    for_designer = audience is rbac.ItemAudience.DESIGNER
    query = db.query(models.TimelineStepEvidence).filter(
        models.TimelineStepEvidence.item_id == item.id,
        models.TimelineStepEvidence.step_id == rbac.coerce_id(step_id),
    )
    if for_designer:
        query = query.filter(models.TimelineStepEvidence.hidden.is_(False))
    rows = query.order_by(models.TimelineStepEvidence.created_at.desc(), models.TimelineStepEvidence.id.desc()).all()
    return [evidence_view(row, for_designer=for_designer) for row in rows]


def _upload_dir() -> str:
    return os.path.realpath(os.getenv("UPLOAD_DIR", "uploaded_files"))


def evidence_file(db: Session, ctx: PrincipalContext, evidence_id: int) -> tuple[str, str]:
    """Resolve a visible image/pdf row to a file under UPLOAD_DIR and its content type."""

    evidence, _audience = visible_evidence(db, ctx, evidence_id)
    if evidence.media_type == models.MediaType.YOUTUBE.value or not evidence.file_path:
        raise NotFoundError("Evidence has no stored file.")
    root = _upload_dir()
    path = os.path.realpath(os.path.join(root, evidence.file_path))
    if os.path.commonpath([root, path]) != root or not os.path.isfile(path):
        raise NotFoundError("Evidence file not found.")
    if evidence.media_type == models.MediaType.PDF.value:
        return path, "application/pdf"
    return path, mimetypes.guess_type(path)[0] or "application/octet-stream"
