"""Append-only event ledger with closed event and object type enumerations."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any

from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, rbac
from .auth import PrincipalContext
from .errors import AtelierError, AuthenticationError, StorageError, ValidationError

# purpose: persist immutable, whitelisted audit events as the system of record
# inputs: session handle, PrincipalContext, event/object type codes, optional ids and payload
# outputs: Event rows (insert only) and read-only listings
# status: active

logger = logging.getLogger(__name__)

MAX_PAYLOAD_SIZE = 10240
MAX_EVENT_TYPE_LENGTH = 100
MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 500

LEDGER_EVENTS = Counter("ledger_events_total", "Ledger events recorded", ["event_type"])
LEDGER_GAPS = Counter("ledger_gaps_total", "Ledger writes that failed after a committed mutation", ["event_type"])


class EventType(str, Enum):
    DESIGNER_PROFILE_CREATED = "designer_profile_created"
    ITEM_CREATED = "item_created"
    ITEM_FIELD_CHANGED = "item_field_changed"
    BOARD_CREATED = "board_created"
    ITEM_ADDED_TO_BOARD = "item_added_to_board"
    BOARD_LAYOUT_UPDATED = "board_layout_updated"
    ITEM_SOURCING_TYPE_SET = "item_sourcing_type_set"
    ITEM_SOURCING_TYPE_CHANGED = "item_sourcing_type_changed"
    ITEM_TIMELINE_TYPE_DERIVED = "item_timeline_type_derived"
    ITEM_DIMENSION_CHANGED = "item_dimension_changed"
    ITEM_CBM_RECALCULATED = "item_cbm_recalculated"
    ITEM_UNIT_NORMALIZED = "item_unit_normalized"
    MATERIAL_CREATED = "material_created"
    MATERIAL_UPDATED = "material_updated"
    MATERIAL_ACTIVATED = "material_activated"
    MATERIAL_DEACTIVATED = "material_deactivated"
    MATERIAL_ATTACHED_TO_ITEM = "material_attached_to_item"
    MATERIAL_DETACHED_FROM_ITEM = "material_detached_from_item"
    MATERIALS_IN_MIND_LINKED_TO_ITEM = "materials_in_mind_linked_to_item"
    ITEM_FACTS_SAVED = "item_facts_saved"
    ITEM_FACTS_UPDATED_AFTER_RFQ = "item_facts_updated_after_rfq"
    CAD_PROTOTYPE_REQUESTED = "cad_prototype_requested"
    VIDEO_DIRECTION_SUBMITTED = "video_direction_submitted"
    ITEM_MESSAGE_SENT = "item_message_sent"
    PAYMENT_MARKED_RECEIVED = "payment_marked_received"
    PROTOTYPE_PAYMENT_MARKED_RECEIVED = "prototype_payment_marked_received"
    CAD_UPLOADED = "cad_uploaded"
    CAD_REVISION_REQUESTED = "cad_revision_requested"
    CAD_APPROVED = "cad_approved"
    CAD_RELEASED_TO_SUPPLIER = "cad_released_to_supplier"
    PROTOTYPE_VIDEO_SUBMITTED = "prototype_video_submitted"
    PROTOTYPE_VIDEO_CHANGES_REQUESTED = "prototype_video_changes_requested"
    PROTOTYPE_VIDEO_APPROVED = "prototype_video_approved"
    PROTOTYPE_REVISION_REQUESTED = "prototype_revision_requested"
    PROTOTYPE_APPROVED = "prototype_approved"
    TIMELINE_CREATED = "timeline_created"
    TIMELINE_STEP_STARTED = "timeline_step_started"
    TIMELINE_STEP_COMPLETED = "timeline_step_completed"
    STEP_EVIDENCE_SUBMITTED = "step_evidence_submitted"
    TIMELINE_STEP_VIDEO_SUBMITTED = "timeline_step_video_submitted"
    TIMELINE_STEP_VIDEO_ADDED_BY_OPERATOR = "timeline_step_video_added_by_operator"
    TIMELINE_STEP_COMMENT_ADDED = "timeline_step_comment_added"

    # widened for the aggregate operations exposed by this service
    ITEM_REMOVED_FROM_BOARD = "item_removed_from_board"
    ITEM_ASSIGNED_TO_ROOM = "item_assigned_to_room"
    ITEM_DELETED = "item_deleted"
    BOARD_UPDATED = "board_updated"
    BOARD_DELETED = "board_deleted"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    ROOM_CREATED = "room_created"
    ROOM_UPDATED = "room_updated"
    ROOM_DELETED = "room_deleted"
    ROOMS_REORDERED = "rooms_reordered"
    TIMELINE_STEP_EVIDENCE_VERIFIED = "timeline_step_evidence_verified"
    EVIDENCE_ADDED = "evidence_added"
    EVIDENCE_COMMENT_ADDED = "evidence_comment_added"
    PROJECT_COMMENT_ADDED = "project_comment_added"
    PROJECT_COMMENT_UPDATED = "project_comment_updated"
    PROJECT_COMMENT_DELETED = "project_comment_deleted"
    SUPPLIER_ROUTED_TO_ITEM = "supplier_routed_to_item"


class ObjectType(str, Enum):
    ITEM = "item"
    BOARD = "board"
    BOARD_LAYOUT = "board_layout"
    DESIGNER_PROFILE = "designer_profile"
    PROTOTYPE_PAYMENT = "prototype_payment"
    ITEM_MESSAGE = "item_message"

    # widened alongside EventType
    PROJECT = "project"
    ROOM = "room"
    EVIDENCE = "evidence"
    PROJECT_COMMENT = "project_comment"
    MATERIAL = "material"


ALLOWED_EVENT_TYPES = frozenset(kind.value for kind in EventType)
ALLOWED_OBJECT_TYPES = frozenset(kind.value for kind in ObjectType)


def optional_id(value) -> int | None:
    """Normalise an optional identifier; 0, negatives and junk mean absent."""

    return rbac.coerce_id(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"{type(value).__name__} is not JSON serialisable")


def canonicalize_payload(payload: Any) -> str | None:
    """Serialise ``payload`` into the stored JSON text, enforcing the size bound."""

    if payload is None:
        return None
    if isinstance(payload, str):
        if payload == "":
            return None
        try:
            json.loads(payload)
        except ValueError as exc:
            raise ValidationError("Event payload is not valid JSON") from exc
        encoded = payload
    else:
        try:
            encoded = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=_json_default)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Event payload cannot be serialised") from exc
    if len(encoded.encode("utf-8")) > MAX_PAYLOAD_SIZE:
        raise ValidationError(f"Event payload exceeds {MAX_PAYLOAD_SIZE} bytes")
    return encoded


def _coerce_enum(value, enum_cls: type[Enum], allowed: frozenset[str], label: str) -> str:
    raw = value.value if isinstance(value, enum_cls) else value
    if not isinstance(raw, str) or raw not in allowed:
        raise ValidationError(f"Unknown {label}: {raw!r}")
    return raw


def _truncate(value: str | None, limit: int) -> str | None:
    if not value:
        return None
    return value[:limit]


def record_event(
    db: Session,
    ctx: PrincipalContext | None,
    event_type: EventType | str,
    object_type: ObjectType | str,
    *,
    object_id=None,
    item_id=None,
    board_id=None,
    actor_firm_id=None,
    payload: Any = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> int:
    """Insert and commit one immutable event row, returning its id.

    The actor is always ``ctx.user_id``. Unknown event or object types and
    oversized payloads are rejected before anything is written.
    """

    if isinstance(event_type, str) and len(event_type) > MAX_EVENT_TYPE_LENGTH:
        raise ValidationError("Event type is too long")
    event_code = _coerce_enum(event_type, EventType, ALLOWED_EVENT_TYPES, "event type")
    object_code = _coerce_enum(object_type, ObjectType, ALLOWED_OBJECT_TYPES, "object type")
    if ctx is None or not optional_id(ctx.user_id):
        raise AuthenticationError("Events require an authenticated actor")
    payload_json = canonicalize_payload(payload)

    row = models.Event(
        actor_user_id=ctx.user_id,
        actor_firm_id=optional_id(actor_firm_id),
        event_type=event_code,
        object_type=object_code,
        object_id=optional_id(object_id),
        item_id=optional_id(item_id),
        board_id=optional_id(board_id),
        payload_json=payload_json,
        ip_address=_truncate(ip_address or ctx.ip_address, MAX_IP_LENGTH),
        user_agent=_truncate(user_agent or ctx.user_agent, MAX_USER_AGENT_LENGTH),
        created_at=models.utcnow(),
    )
    try:
        db.add(row)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "failed to record event %s on %s %s by user %s: %s",
            event_code,
            object_code,
            row.object_id,
            ctx.user_id,
            exc,
        )
        raise StorageError("Failed to record event") from exc
    LEDGER_EVENTS.labels(event_code).inc()
    return row.id


def record_event_safely(
    db: Session,
    ctx: PrincipalContext | None,
    event_type: EventType | str,
    object_type: ObjectType | str,
    **fields: Any,
) -> int | None:
    """Record an event after the entity write already committed.

    A failure here is logged as an audit gap and never undoes the mutation.
    """

    try:
        return record_event(db, ctx, event_type, object_type, **fields)
    except AtelierError as exc:
        code = event_type.value if isinstance(event_type, Enum) else str(event_type)
        LEDGER_GAPS.labels(code[:MAX_EVENT_TYPE_LENGTH]).inc()
        logger.error(
            "audit gap: event %s for object %s was not recorded (%s)",
            code,
            fields.get("object_id"),
            exc.message,
        )
        return None


def decode_payload(event: models.Event) -> Any:
    if not event.payload_json:
        return None
    try:
        return json.loads(event.payload_json)
    except ValueError:
        return None


def event_to_dict(event: models.Event) -> dict[str, Any]:
    return {
        "id": event.id,
        "actor_user_id": event.actor_user_id,
        "actor_firm_id": event.actor_firm_id,
        "event_type": event.event_type,
        "object_type": event.object_type,
        "object_id": event.object_id,
        "item_id": event.item_id,
        "board_id": event.board_id,
        "payload": decode_payload(event),
        "created_at": event.created_at.isoformat() if event.created_at else None,
    }


def list_events(
    db: Session,
    ctx: PrincipalContext,
    *,
    item_id=None,
    board_id=None,
    event_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[models.Event]:
    """Read events newest first; never writes.

    Non-admins see events on items and boards they can resolve, or their own.
    """

    item_id, board_id = optional_id(item_id), optional_id(board_id)
    query = db.query(models.Event)
    if item_id is not None:
        if not ctx.is_admin and rbac.resolve_item(db, ctx, item_id) is None:
            return []
        query = query.filter(models.Event.item_id == item_id)
    if board_id is not None:
        if not ctx.is_admin and rbac.resolve_board(db, ctx, board_id) is None:
            return []
        query = query.filter(models.Event.board_id == board_id)
    if item_id is None and board_id is None and not ctx.is_admin:
        query = query.filter(models.Event.actor_user_id == ctx.user_id)
    if event_type:
        query = query.filter(models.Event.event_type == event_type)
    return (
        query.order_by(models.Event.created_at.desc(), models.Event.id.desc())
        .offset(max(offset, 0))
        .limit(max(min(limit, 200), 1))
        .all()
    )


def events_for_object(db: Session, object_type: ObjectType | str, object_id) -> list[models.Event]:
    code = object_type.value if isinstance(object_type, ObjectType) else object_type
    return (
        db.query(models.Event)
        .filter(
            models.Event.object_type == code,
            models.Event.object_id == optional_id(object_id),
        )
        .order_by(models.Event.id.asc())
        .all()
    )
