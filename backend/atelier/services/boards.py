"""Board orchestration: creation, membership of items and layout snapshots."""

from __future__ import annotations

import json
import math
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import cache, hooks, membership, models, rbac
from ..auth import PrincipalContext
from ..errors import ConflictError, NotFoundError, ValidationError
from ..eventlog import EventType, ObjectType, canonicalize_payload, record_event_safely

# purpose: board CRUD, item placement history and layout persistence behind the resolver
# inputs: session handle, PrincipalContext, validated scalars from routes
# outputs: Board/BoardItem rows, deterministic layout dicts, ledger events after each commit
# status: active
# depends_on: atelier.rbac, atelier.eventlog, atelier.cache

MAX_BOARD_NAME_LENGTH = 255
ALLOWED_VIEW_MODES = tuple(mode.value for mode in models.BoardViewMode)

LAYOUT_ALLOWED_KEYS = frozenset({"id", "x", "y", "z", "width", "height", "sizeKey", "displayMode"})
LAYOUT_DISPLAY_MODES = ("photo_only", "full")
LAYOUT_SIZE_KEYS = ("S", "D", "L", "XL")
MIN_POSITION, MAX_POSITION = -100000, 100000
MIN_WIDTH, MAX_WIDTH = 100, 800
MIN_HEIGHT, MAX_HEIGHT = 100, 1000


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Board name is required.")
    if len(cleaned) > MAX_BOARD_NAME_LENGTH:
        raise ValidationError("Board name exceeds maximum length of 255 characters.")
    return cleaned


def _clean_view_mode(view_mode: str | None) -> str:
    mode = view_mode or models.BoardViewMode.GRID.value
    if mode not in ALLOWED_VIEW_MODES:
        raise ValidationError("Invalid view mode.")
    return mode


def _owns_live_board(db: Session, user_id: int) -> bool:
    found = (
        db.query(models.Board.id)
        .filter(models.Board.owner_user_id == user_id, models.Board.deleted_at.is_(None))
        .first()
    )
    return found is not None


def create_board(
    db: Session,
    ctx: PrincipalContext,
    *,
    name: str | None,
    description: str | None = None,
    view_mode: str | None = None,
    owner_firm_id: int | None = None,
) -> models.Board:
    cleaned_name = _clean_name(name)
    mode = _clean_view_mode(view_mode)
    if (
        not ctx.is_admin
        and ctx.role == models.UserRole.DESIGNER.value
        and _owns_live_board(db, ctx.user_id)
    ):
        raise ConflictError("You already have a workspace. Designers can only create one workspace.")
    owner_firm_id = rbac.coerce_id(owner_firm_id)
    if owner_firm_id is not None:
        if not membership.firm_exists(db, owner_firm_id):
            raise ValidationError("Firm not found.")
        if not ctx.is_admin and not membership.is_active_firm_member(db, ctx.user_id, owner_firm_id):
            raise ValidationError("You are not an active member of that firm.")

    board = models.Board(
        owner_user_id=ctx.user_id,
        owner_firm_id=owner_firm_id or None,
        name=cleaned_name,
        description=(description or "").strip() or None,
        view_mode=mode,
    )
    db.add(board)
    hooks.commit(db)
    db.refresh(board)
    record_event_safely(
        db,
        ctx,
        EventType.BOARD_CREATED,
        ObjectType.BOARD,
        object_id=board.id,
        board_id=board.id,
        actor_firm_id=board.owner_firm_id,
        payload={"name": board.name, "view_mode": board.view_mode},
    )
    return board


def list_boards(db: Session, ctx: PrincipalContext) -> list[tuple[models.Board, rbac.BoardAccess]]:
    """Boards the principal can see, each with the access path used."""

    query = db.query(models.Board).filter(models.Board.deleted_at.is_(None))
    if not ctx.is_admin:
        conditions = [models.Board.owner_user_id == ctx.user_id]
        firm_ids = membership.active_firm_ids(db, ctx.user_id)
        if firm_ids:
            member_ids = (
                db.query(models.FirmMember.user_id)
                .filter(
                    models.FirmMember.firm_id.in_(firm_ids),
                    models.FirmMember.status == models.FirmMemberStatus.ACTIVE.value,
                    models.FirmMember.left_at.is_(None),
                )
            )
            conditions.append(models.Board.owner_firm_id.in_(firm_ids))
            conditions.append(models.Board.owner_user_id.in_(member_ids))
        query = query.filter(sa.or_(*conditions))
    results = []
    for board in query.order_by(models.Board.created_at.asc(), models.Board.id.asc()).all():
        access = rbac.board_access(db, ctx, board)
        if access is not None:
            results.append((board, access))
    return results


def get_board(db: Session, ctx: PrincipalContext, board_id: int) -> tuple[models.Board, rbac.BoardAccess]:
    board = rbac.require_board_view(db, ctx, board_id)
    return board, rbac.board_access(db, ctx, board)


def update_board(db: Session, ctx: PrincipalContext, board_id: int, changes: dict[str, Any]) -> models.Board:
    board = rbac.require_board_edit(db, ctx, board_id)
    applied: dict[str, Any] = {}
    if "name" in changes:
        applied["name"] = _clean_name(changes["name"])
    if "view_mode" in changes:
        applied["view_mode"] = _clean_view_mode(changes["view_mode"])
    if "description" in changes:
        applied["description"] = (changes["description"] or "").strip() or None
    applied = {key: value for key, value in applied.items() if getattr(board, key) != value}
    if not applied:
        return board
    for key, value in applied.items():
        setattr(board, key, value)
    hooks.add_post_commit_hook(db, cache.invalidate_board, board.id)
    hooks.commit(db)
    db.refresh(board)
    record_event_safely(
        db,
        ctx,
        EventType.BOARD_UPDATED,
        ObjectType.BOARD,
        object_id=board.id,
        board_id=board.id,
        payload={"changed": sorted(applied)},
    )
    return board


def delete_board(db: Session, ctx: PrincipalContext, board_id: int) -> None:
    board = rbac.require_board_edit(db, ctx, board_id)
    board.deleted_at = models.utcnow()
    hooks.add_post_commit_hook(db, cache.invalidate_board, board.id)
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.BOARD_DELETED,
        ObjectType.BOARD,
        object_id=board.id,
        board_id=board.id,
    )


def _active_board_item(db: Session, board_id: int, item_id: int) -> models.BoardItem | None:
    return (
        db.query(models.BoardItem)
        .filter(
            models.BoardItem.board_id == board_id,
            models.BoardItem.item_id == item_id,
            models.BoardItem.removed_at.is_(None),
        )
        .first()
    )


def add_item_to_board(db: Session, ctx: PrincipalContext, board_id: int, item_id: int) -> models.BoardItem:
    board = rbac.require_board_edit(db, ctx, board_id)
    item = rbac.resolve_item(db, ctx, item_id)
    if item is None:
        raise NotFoundError("Item not found or has been deleted.")
    if _active_board_item(db, board.id, item.id) is not None:
        raise ConflictError("Item is already on this board.")

    placement = models.BoardItem(
        board_id=board.id,
        item_id=item.id,
        added_by_user_id=ctx.user_id,
        added_at=models.utcnow(),
    )
    db.add(placement)
    hooks.commit(db)
    db.refresh(placement)
    record_event_safely(
        db,
        ctx,
        EventType.ITEM_ADDED_TO_BOARD,
        ObjectType.BOARD,
        object_id=board.id,
        board_id=board.id,
        item_id=item.id,
    )
    return placement


def remove_item_from_board(db: Session, ctx: PrincipalContext, board_id: int, item_id: int) -> models.BoardItem:
    board = rbac.require_board_edit(db, ctx, board_id)
    placement = _active_board_item(db, board.id, rbac.coerce_id(item_id) or 0)
    if placement is None:
        raise NotFoundError("Item is not on this board or has already been removed.")
    placement.removed_at = models.utcnow()
    hooks.add_post_commit_hook(db, cache.invalidate_board, board.id)
    hooks.commit(db)
    db.refresh(placement)
    record_event_safely(
        db,
        ctx,
        EventType.ITEM_REMOVED_FROM_BOARD,
        ObjectType.BOARD,
        object_id=board.id,
        board_id=board.id,
        item_id=placement.item_id,
    )
    return placement


def list_board_items(db: Session, ctx: PrincipalContext, board_id: int) -> list[models.BoardItem]:
    board = rbac.require_board_view(db, ctx, board_id)
    return (
        db.query(models.BoardItem)
        .join(models.Item, models.Item.id == models.BoardItem.item_id)
        .filter(
            models.BoardItem.board_id == board.id,
            models.BoardItem.removed_at.is_(None),
            models.Item.deleted_at.is_(None),
        )
        .order_by(models.BoardItem.added_at.asc(), models.BoardItem.id.asc())
        .all()
    )


def board_item_history(db: Session, ctx: PrincipalContext, board_id: int, item_id: int) -> list[models.BoardItem]:
    """Every placement row for the item on the board, removed ones included."""

    board = rbac.require_board_view(db, ctx, board_id)
    return (
        db.query(models.BoardItem)
        .filter(models.BoardItem.board_id == board.id, models.BoardItem.item_id == rbac.coerce_id(item_id))
        .order_by(models.BoardItem.id.asc())
        .all()
    )


def _placement_layout(db: Session, board_id: int, item_id: int) -> models.BoardLayout | None:
    return db.query(models.BoardLayout).filter_by(board_id=board_id, item_id=item_id).first()


def placement_layout_view(layout: models.BoardLayout | None, board_id: int, item_id: int) -> dict[str, Any]:
    if layout is None:
        return {
            "board_id": board_id,
            "item_id": item_id,
            "position_x": 0.0,
            "position_y": 0.0,
            "position_z": 0,
            "size_width": None,
            "size_height": None,
            "view_mode": models.BoardViewMode.GRID.value,
            "updated_at": None,
        }
    return {
        "board_id": layout.board_id,
        "item_id": layout.item_id,
        "position_x": layout.position_x,
        "position_y": layout.position_y,
        "position_z": layout.position_z,
        "size_width": layout.size_width,
        "size_height": layout.size_height,
        "view_mode": layout.view_mode,
        "updated_at": layout.updated_at.isoformat() if layout.updated_at else None,
    }


def _size(value: float | None, label: str) -> float | None:
    if value is None:
        return None
    if not math.isfinite(value) or not 0 <= value <= MAX_POSITION:
        raise ValidationError(f"Size {label} out of range.")
    return float(value)


def get_item_layout(db: Session, ctx: PrincipalContext, board_id: int, item_id: int) -> dict[str, Any]:
    board = rbac.require_board_view(db, ctx, board_id)
    placement = _active_board_item(db, board.id, rbac.coerce_id(item_id) or 0)
    if placement is None:
        raise NotFoundError("Item is not on this board.")
    layout = _placement_layout(db, board.id, placement.item_id)
    return placement_layout_view(layout, board.id, placement.item_id)


def update_item_layout(
    db: Session,
    ctx: PrincipalContext,
    board_id: int,
    item_id: int,
    *,
    position_x: float = 0.0,
    position_y: float = 0.0,
    position_z: int = 0,
    size_width: float | None = None,
    size_height: float | None = None,
    view_mode: str | None = None,
) -> dict[str, Any]:
    """Upsert one placement's layout; omitted sizes keep their stored value."""

    board = rbac.require_board_edit(db, ctx, board_id)
    placement = _active_board_item(db, board.id, rbac.coerce_id(item_id) or 0)
    if placement is None:
        raise NotFoundError("Item is not on this board.")
    mode = _clean_view_mode(view_mode)
    x, y = float(position_x or 0), float(position_y or 0)
    if not (math.isfinite(x) and math.isfinite(y)) or abs(x) > MAX_POSITION or abs(y) > MAX_POSITION:
        raise ValidationError("Position values out of range.")
    width, height = _size(size_width, "width"), _size(size_height, "height")

    layout = _placement_layout(db, board.id, placement.item_id)
    if layout is None:
        layout = models.BoardLayout(board_id=board.id, item_id=placement.item_id)
        db.add(layout)
    layout.position_x = x
    layout.position_y = y
    layout.position_z = int(position_z or 0)
    layout.view_mode = mode
    if width is not None:
        layout.size_width = width
    if height is not None:
        layout.size_height = height
    layout.updated_at = models.utcnow()
    hooks.commit(db)
    db.refresh(layout)
    record_event_safely(
        db,
        ctx,
        EventType.BOARD_LAYOUT_UPDATED,
        ObjectType.BOARD_LAYOUT,
        object_id=layout.id,
        board_id=board.id,
        item_id=layout.item_id,
        payload={
            "position_x": layout.position_x,
            "position_y": layout.position_y,
            "position_z": layout.position_z,
            "view_mode": layout.view_mode,
        },
    )
    return placement_layout_view(layout, board.id, layout.item_id)


def parse_layout(raw: str | None) -> dict[str, Any]:
    """Decode a stored layout; anything malformed reads as an empty layout."""

    if not raw:
        return {"items": []}
    try:
        data = json.loads(raw)
    except ValueError:
        return {"items": []}
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        return {"items": []}
    return {"items": data["items"]}


def board_summary(board: models.Board) -> dict[str, Any]:
    return {
        "id": board.id,
        "name": board.name,
        "description": board.description or None,
        "view_mode": board.view_mode,
        "created_at": board.created_at.isoformat() if board.created_at else None,
        "updated_at": board.updated_at.isoformat() if board.updated_at else None,
    }


def get_board_layout(db: Session, ctx: PrincipalContext, board_id: int) -> dict[str, Any]:
    """Read-only layout view: no ledger event, no cache fill, no row changes."""

    board = rbac.require_board_view(db, ctx, board_id)
    layout = cache.get_cached_layout(board.id)
    if layout is None or not isinstance(layout.get("items"), list):
        layout = parse_layout(board.latest_layout_json)
    return {"board": board_summary(board), "layout": {"items": layout["items"]}}


def _number(item: dict[str, Any], key: str, index: int) -> float:
    value = item.get(key)
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Item at index {index}: {key} must be numeric.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Item at index {index}: {key} must be numeric.") from exc
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"Item at index {index}: {key} must be numeric.")
    return number


def validate_layout_items(items: Any) -> list[dict[str, Any]]:
    """Validate a layout snapshot and renumber z to 1..N preserving order."""

    if not isinstance(items, list):
        raise ValidationError("Items must be a valid JSON array.")
    validated: list[dict[str, Any]] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Item at index {index} must be an object.")
        unknown = sorted(set(item) - LAYOUT_ALLOWED_KEYS)
        if unknown:
            raise ValidationError(f"Item at index {index} contains unknown keys: {', '.join(unknown)}")
        item_id = item.get("id")
        if not isinstance(item_id, str) or not item_id.strip():
            raise ValidationError(f"Item at index {index}: id is required and must be a non-empty string.")
        x, y = _number(item, "x", index), _number(item, "y", index)
        z = _number(item, "z", index)
        width, height = _number(item, "width", index), _number(item, "height", index)
        display_mode = item.get("displayMode")
        if display_mode not in LAYOUT_DISPLAY_MODES:
            raise ValidationError(
                f"Item at index {index}: displayMode must be one of: {', '.join(LAYOUT_DISPLAY_MODES)}"
            )
        if not MIN_POSITION <= x <= MAX_POSITION or not MIN_POSITION <= y <= MAX_POSITION:
            raise ValidationError(f"Item at index {index}: position out of range.")
        if not MIN_POSITION <= z <= MAX_POSITION:
            raise ValidationError(f"Item at index {index}: z out of range.")
        if not MIN_WIDTH <= width <= MAX_WIDTH:
            raise ValidationError(f"Item at index {index}: width out of range (must be between 100 and 800 pixels).")
        if not MIN_HEIGHT <= height <= MAX_HEIGHT:
            raise ValidationError(f"Item at index {index}: height out of range (must be between 100 and 1000 pixels).")
        cleaned = {
            "id": item_id.strip(),
            "x": x,
            "y": y,
            "z": int(z),
            "width": width,
            "height": height,
            "displayMode": display_mode,
        }
        size_key = item.get("sizeKey")
        if size_key:
            if size_key not in LAYOUT_SIZE_KEYS:
                raise ValidationError(f"Item at index {index}: sizeKey must be one of: {', '.join(LAYOUT_SIZE_KEYS)}")
            cleaned["sizeKey"] = size_key
        validated.append(cleaned)

    ordered = sorted(validated, key=lambda entry: entry["z"])
    for position, entry in enumerate(ordered, start=1):
        entry["z"] = position
    return ordered


def _layout_event_payload(board_id: int, user_id: int, items: list[dict[str, Any]], saved_at) -> dict[str, Any]:
    payload = {
        "board_id": board_id,
        "item_count": len(items),
        "saved_by_user_id": user_id,
        "saved_at": saved_at,
        "full_layout_snapshot": items,
    }
    try:
        canonicalize_payload(payload)
    except ValidationError:
        payload.pop("full_layout_snapshot")
        payload["snapshot_omitted"] = True
    return payload


def save_board_layout(db: Session, ctx: PrincipalContext, board_id: int, items: Any) -> dict[str, Any]:
    board = rbac.require_board_edit(db, ctx, board_id)
    validated = validate_layout_items(items)
    snapshot = {"items": validated}
    saved_at = models.utcnow()
    board.latest_layout_json = json.dumps(snapshot, ensure_ascii=False, separators=(",", ":"))
    board.updated_at = saved_at
    hooks.add_post_commit_hook(db, cache.store_layout, board.id, snapshot)
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.BOARD_LAYOUT_UPDATED,
        ObjectType.BOARD,
        object_id=board.id,
        board_id=board.id,
        payload=_layout_event_payload(board.id, ctx.user_id, validated, saved_at),
    )
    return {"saved_at": saved_at.isoformat(), "item_count": len(validated)}
