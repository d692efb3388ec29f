"""Item lifecycle plus the dimension/sourcing intelligence applied on every write."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from .. import hooks, measures, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ConflictError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely
from . import timeline as timeline_service

# purpose: create/update items with normalised dimensions, derived cbm and timeline type
# inputs: session handle, PrincipalContext, whitelisted field dicts
# outputs: Item rows, change lists, intelligence events after each commit
# status: active
# depends_on: atelier.measures, atelier.services.timeline

MAX_TITLE_LENGTH = 500
# largest accepted edge length, before and after unit conversion
MAX_ITEM_DIMENSION_CM = 5000.0
DIMENSION_AXES = ("width", "depth", "height")
ITEM_STATUSES = tuple(status.value for status in models.ItemStatus)
ITEM_TYPES = tuple(kind.value for kind in models.ItemType)

UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "item_type",
        "sourcing_type",
        "dimension_width",
        "dimension_depth",
        "dimension_height",
        "dimension_units_original",
    }
)
CORE_FIELDS = ("title", "description", "status", "item_type")
INTELLIGENCE_COLUMNS = (
    "sourcing_type",
    "timeline_type",
    "dimension_width_cm",
    "dimension_depth_cm",
    "dimension_height_cm",
    "dimension_width_original",
    "dimension_depth_original",
    "dimension_height_original",
    "dimension_units_original",
    "cbm",
)
DIMENSION_COLUMNS = tuple(
    f"dimension_{axis}_{suffix}" for axis in DIMENSION_AXES for suffix in ("cm", "original")
)


def _clean_title(title: Any) -> str:
    cleaned = str(title or "").strip()
    if not cleaned:
        raise ValidationError("Title is required.")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters.")
    return cleaned


def _core_values(changes: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if "title" in changes:
        values["title"] = _clean_title(changes["title"])
    if "description" in changes:
        values["description"] = str(changes["description"] or "").strip() or None
    if "status" in changes:
        if changes["status"] not in ITEM_STATUSES:
            raise ValidationError("Invalid status value.")
        values["status"] = changes["status"]
    if "item_type" in changes:
        if changes["item_type"] not in ITEM_TYPES:
            raise ValidationError("Invalid item type value.")
        values["item_type"] = changes["item_type"]
    if "sourcing_type" in changes:
        sourcing_type = changes["sourcing_type"] or None
        if not measures.is_valid_sourcing_type(sourcing_type):
            raise ValidationError(
                "Invalid sourcing type. Allowed: " + ", ".join(measures.ALLOWED_SOURCING_TYPES)
            )
        values["sourcing_type"] = sourcing_type
    return values


def _dimension_values(item: models.Item, changes: dict[str, Any]) -> dict[str, Any]:
    """Normalise supplied dimensions; an empty value clears that axis.

    A unit change without new numbers re-reads the stored originals in the new unit.
    """

    touched = [axis for axis in DIMENSION_AXES if f"dimension_{axis}" in changes]
    if not touched and "dimension_units_original" not in changes:
        return {}

    if "dimension_units_original" in changes:
        unit = changes["dimension_units_original"] or None
    else:
        unit = item.dimension_units_original
    if not measures.is_valid_unit(unit):
        raise ValidationError("Invalid unit. Allowed: " + ", ".join(measures.SUPPORTED_UNITS))
    unit = unit or measures.Unit.CENTIMETRE.value

    values: dict[str, Any] = {"dimension_units_original": unit}
    errors: list[str] = []
    for axis in DIMENSION_AXES:
        field = f"dimension_{axis}"
        if field in changes:
            raw = changes[field]
            if raw is None or raw == "":
                values[f"{field}_original"] = None
                values[f"{field}_cm"] = None
                continue
            try:
                original = float(raw)
            except (TypeError, ValueError):
                errors.append(f"{field} must be a number")
                continue
            if original <= 0:
                errors.append(f"{field} must be greater than 0")
                continue
            if original > MAX_ITEM_DIMENSION_CM:
                errors.append(f"{field} exceeds maximum of {MAX_ITEM_DIMENSION_CM:g} cm")
                continue
        else:
            original = getattr(item, f"{field}_original")
            if original is None:
                continue
        converted = measures.normalize_to_cm(original, unit)
        if converted is not None and converted > MAX_ITEM_DIMENSION_CM:
            errors.append(f"{field} exceeds maximum of {MAX_ITEM_DIMENSION_CM:g} cm after conversion")
            continue
        values[f"{field}_original"] = original
        values[f"{field}_cm"] = converted
    if errors:
        raise ValidationError("Invalid dimensions: " + ", ".join(errors), details={"errors": errors})
    return values


def _plan(item: models.Item, changes: dict[str, Any]) -> dict[str, Any]:
    """Return the full set of column values the write implies, derived columns included."""

    values = _core_values(changes)
    values.update(_dimension_values(item, changes))

    def current(column: str):
        return values[column] if column in values else getattr(item, column)

    values["cbm"] = measures.calculate_cbm(
        current("dimension_width_cm"),
        current("dimension_depth_cm"),
        current("dimension_height_cm"),
    )
    values["timeline_type"] = measures.derive_timeline_type(current("sourcing_type"))
    return values


def _diff(item: models.Item, values: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {"field": column, "old_value": getattr(item, column), "new_value": value}
        for column, value in values.items()
        if getattr(item, column) != value
    ]


def _intelligence_events(changed: dict[str, dict[str, Any]], dimension_input: bool) -> list[EventType]:
    events: list[EventType] = []
    if "sourcing_type" in changed:
        if changed["sourcing_type"]["old_value"] is None:
            events.append(EventType.ITEM_SOURCING_TYPE_SET)
        else:
            events.append(EventType.ITEM_SOURCING_TYPE_CHANGED)
    if "timeline_type" in changed:
        events.append(EventType.ITEM_TIMELINE_TYPE_DERIVED)
    dimensions_changed = any(column in changed for column in DIMENSION_COLUMNS)
    if dimensions_changed:
        events.append(EventType.ITEM_DIMENSION_CHANGED)
    if dimension_input and (dimensions_changed or "dimension_units_original" in changed):
        events.append(EventType.ITEM_UNIT_NORMALIZED)
    if "cbm" in changed:
        events.append(EventType.ITEM_CBM_RECALCULATED)
    return events


def intelligence_snapshot(item: models.Item) -> dict[str, Any]:
    return {column: getattr(item, column) for column in INTELLIGENCE_COLUMNS}


def _log_intelligence(db: Session, ctx: PrincipalContext, item: models.Item, events: list[EventType]) -> None:
    snapshot = intelligence_snapshot(item)
    for event_type in events:
        record_event_safely(
            db,
            ctx,
            event_type,
            ObjectType.ITEM,
            object_id=item.id,
            item_id=item.id,
            payload=snapshot,
        )


def _has_dimension_input(changes: dict[str, Any]) -> bool:
    return any(f"dimension_{axis}" in changes for axis in DIMENSION_AXES) or "dimension_units_original" in changes


def create_item(
    db: Session,
    ctx: PrincipalContext,
    fields: dict[str, Any],
    *,
    board_id: int | None = None,
    room_id: int | None = None,
) -> tuple[models.Item, bool]:
    """Create an item with its timeline; returns ``(item, added_to_board)``."""

    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            "Unknown fields not allowed: " + ", ".join(unknown),
            details={"unknown_fields": unknown},
        )
    changes = dict(fields)
    changes.setdefault("item_type", models.ItemType.FURNITURE.value)
    changes.setdefault("status", models.ItemStatus.ACTIVE.value)
    if "title" not in changes:
        raise ValidationError("Title is required.")

    board = rbac.require_board_edit(db, ctx, board_id) if rbac.coerce_id(board_id) else None
    room = rbac.require_room_edit(db, ctx, room_id) if rbac.coerce_id(room_id) else None

    item = models.Item(owner_user_id=ctx.user_id, room_id=room.id if room else None, version=1)
    values = _plan(item, changes)
    changed = {change["field"]: change for change in _diff(item, values)}
    for column, value in values.items():
        setattr(item, column, value)
    db.add(item)
    db.flush()
    timeline = timeline_service.create_timeline(db, item)
    if board is not None:
        db.add(
            models.BoardItem(
                board_id=board.id,
                item_id=item.id,
                added_by_user_id=ctx.user_id,
                added_at=models.utcnow(),
            )
        )
    hooks.commit(db)
    db.refresh(item)

    record_event_safely(
        db,
        ctx,
        EventType.ITEM_CREATED,
        ObjectType.ITEM,
        object_id=item.id,
        item_id=item.id,
        payload={"title": item.title, "item_type": item.item_type, "status": item.status},
    )
    _log_intelligence(db, ctx, item, _intelligence_events(changed, _has_dimension_input(changes)))
    timeline_service.log_timeline_created(db, ctx, item.id, timeline.id)
    if board is not None:
        record_event_safely(
            db,
            ctx,
            EventType.ITEM_ADDED_TO_BOARD,
            ObjectType.BOARD,
            object_id=board.id,
            board_id=board.id,
            item_id=item.id,
        )
    return item, board is not None


def get_item(db: Session, ctx: PrincipalContext, item_id: int) -> models.Item:
    item, _audience = rbac.require_item_audience(db, ctx, item_id)
    return item


def list_items(
    db: Session,
    ctx: PrincipalContext,
    *,
    room_id: int | None = None,
    board_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[models.Item]:
    """Own items by default; a room or board filter lists what that container holds."""

    query = db.query(models.Item).filter(models.Item.deleted_at.is_(None))
    if room_id is not None:
        room = rbac.resolve_room(db, ctx, room_id)
        if room is None:
            raise AuthorizationError("Room not found or access denied")
        query = query.filter(models.Item.room_id == room.id)
    elif board_id is not None:
        board = rbac.require_board_view(db, ctx, board_id)
        query = query.join(models.BoardItem, models.BoardItem.item_id == models.Item.id).filter(
            models.BoardItem.board_id == board.id,
            models.BoardItem.removed_at.is_(None),
        )
    elif not ctx.is_admin:
        query = query.filter(models.Item.owner_user_id == ctx.user_id)
    limit = max(1, min(int(limit or 50), 200))
    return (
        query.order_by(models.Item.created_at.desc(), models.Item.id.desc())
        .offset(max(0, int(offset or 0)))
        .limit(limit)
        .all()
    )


def update_item(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    changes: dict[str, Any],
) -> tuple[models.Item, list[dict[str, Any]]]:
    item = rbac.require_item_edit(db, ctx, item_id)
    unknown = sorted(set(changes) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            "Unknown fields not allowed: " + ", ".join(unknown),
            details={"unknown_fields": unknown},
        )

    values = _plan(item, changes)
    changed_fields = _diff(item, values)
    if not changed_fields:
        return item, []
    changed = {change["field"]: change for change in changed_fields}
    for column, change in changed.items():
        setattr(item, column, change["new_value"])
    item.version = (item.version or 1) + 1
    hooks.commit(db)
    db.refresh(item)

    core_changes = [change for change in changed_fields if change["field"] in CORE_FIELDS]
    if core_changes:
        record_event_safely(
            db,
            ctx,
            EventType.ITEM_FIELD_CHANGED,
            ObjectType.ITEM,
            object_id=item.id,
            item_id=item.id,
            payload={"changed_fields": core_changes, "version": item.version},
        )
    _log_intelligence(db, ctx, item, _intelligence_events(changed, _has_dimension_input(changes)))
    return item, changed_fields


def assign_item_to_room(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    room_id: int | None,
) -> models.Item:
    """Place an item in a room, or take it out of its room when ``room_id`` is empty."""

    item = rbac.require_item_edit(db, ctx, item_id)
    room = rbac.require_room_edit(db, ctx, room_id) if rbac.coerce_id(room_id) else None
    previous_room_id = item.room_id
    new_room_id = room.id if room else None
    if previous_room_id == new_room_id:
        return item
    item.room_id = new_room_id
    hooks.commit(db)
    db.refresh(item)
    record_event_safely(
        db,
        ctx,
        EventType.ITEM_ASSIGNED_TO_ROOM,
        ObjectType.ITEM,
        object_id=item.id,
        item_id=item.id,
        board_id=room.project.board_id if room else None,
        payload={"room_id": new_room_id, "previous_room_id": previous_room_id},
    )
    return item


def delete_item(db: Session, ctx: PrincipalContext, item_id: int) -> None:
    """Soft-delete an item and close its active board placements."""

    item = rbac.require_item_edit(db, ctx, item_id)
    now = models.utcnow()
    placements = (
        db.query(models.BoardItem)
        .filter(models.BoardItem.item_id == item.id, models.BoardItem.removed_at.is_(None))
        .all()
    )
    for placement in placements:
        placement.removed_at = now
    item.deleted_at = now
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.ITEM_DELETED,
        ObjectType.ITEM,
        object_id=item.id,
        item_id=item.id,
        payload={"removed_from_boards": sorted(placement.board_id for placement in placements)},
    )


def add_supplier_route(db: Session, ctx: PrincipalContext, item_id: int, supplier_id: int) -> models.SupplierRoute:
    """Route a supplier to an item so they may submit step evidence for it."""

    if not ctx.is_operator:
        raise AuthorizationError("Only operators can route suppliers.")
    item, _audience = rbac.require_item_audience(db, ctx, item_id)
    supplier = db.get(models.User, rbac.coerce_id(supplier_id) or 0)
    if supplier is None or supplier.role != models.UserRole.SUPPLIER.value:
        raise ValidationError("Supplier not found.")
    if rbac.is_routed_supplier(db, item.id, supplier.id):
        raise ConflictError("Supplier is already routed to this item.")
    route = models.SupplierRoute(item_id=item.id, supplier_id=supplier.id)
    db.add(route)
    hooks.commit(db)
    db.refresh(route)
    record_event_safely(
        db,
        ctx,
        EventType.SUPPLIER_ROUTED_TO_ITEM,
        ObjectType.ITEM,
        object_id=item.id,
        item_id=item.id,
        payload={"supplier_id": supplier.id},
    )
    return route
