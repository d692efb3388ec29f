"""Projects and rooms nested under boards."""

from __future__ import annotations

from typing import Any, Iterable

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import ConflictError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely

# purpose: project/room lifecycle whose access is always the parent board's
# inputs: session handle, PrincipalContext, validated names/orders
# outputs: Project/Room rows; ledger events after each committed mutation
# status: active
# depends_on: atelier.rbac.resolve_project, atelier.rbac.resolve_room

MAX_NAME_LENGTH = 255
PROJECT_STATUSES = tuple(status.value for status in models.ProjectStatus)


def _clean_name(name: str | None, label: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{label} name is required.")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"{label} name exceeds maximum length of {MAX_NAME_LENGTH} characters.")
    return cleaned


def _live_rooms(db: Session, project_id: int):
    return db.query(models.Room).filter(
        models.Room.project_id == project_id,
        models.Room.deleted_at.is_(None),
    )


def _live_item_count(db: Session, room_ids: Iterable[int]) -> int:
    room_ids = list(room_ids)
    if not room_ids:
        return 0
    return (
        db.query(sa.func.count(models.Item.id))
        .filter(models.Item.room_id.in_(room_ids), models.Item.deleted_at.is_(None))
        .scalar()
    ) or 0


def create_project(
    db: Session,
    ctx: PrincipalContext,
    board_id: int,
    *,
    name: str | None,
    description: str | None = None,
) -> models.Project:
    cleaned = _clean_name(name, "Project")
    board = rbac.require_board_edit(db, ctx, board_id)
    project = models.Project(
        board_id=board.id,
        name=cleaned,
        description=(description or "").strip() or None,
        status=models.ProjectStatus.DRAFT.value,
        created_by_user_id=ctx.user_id,
    )
    db.add(project)
    hooks.commit(db)
    db.refresh(project)
    record_event_safely(
        db,
        ctx,
        EventType.PROJECT_CREATED,
        ObjectType.PROJECT,
        object_id=project.id,
        board_id=board.id,
        payload={"name": project.name, "status": project.status},
    )
    return project


def list_projects(db: Session, ctx: PrincipalContext, board_id: int) -> list[models.Project]:
    board = rbac.require_board_view(db, ctx, board_id)
    return (
        db.query(models.Project)
        .filter(models.Project.board_id == board.id, models.Project.deleted_at.is_(None))
        .order_by(models.Project.created_at.asc(), models.Project.id.asc())
        .all()
    )


def get_project(db: Session, ctx: PrincipalContext, project_id: int) -> models.Project:
    return rbac.require_project_view(db, ctx, project_id)


def update_project(db: Session, ctx: PrincipalContext, project_id: int, changes: dict[str, Any]) -> models.Project:
    project = rbac.require_project_edit(db, ctx, project_id)
    applied: dict[str, Any] = {}
    if "name" in changes:
        applied["name"] = _clean_name(changes["name"], "Project")
    if "description" in changes:
        applied["description"] = (changes["description"] or "").strip() or None
    if "status" in changes:
        if changes["status"] not in PROJECT_STATUSES:
            raise ValidationError("Invalid project status.")
        applied["status"] = changes["status"]
    applied = {key: value for key, value in applied.items() if getattr(project, key) != value}
    if not applied:
        return project
    for key, value in applied.items():
        setattr(project, key, value)
    hooks.commit(db)
    db.refresh(project)
    record_event_safely(
        db,
        ctx,
        EventType.PROJECT_UPDATED,
        ObjectType.PROJECT,
        object_id=project.id,
        board_id=project.board_id,
        payload={"changed": sorted(applied)},
    )
    return project


def delete_project(db: Session, ctx: PrincipalContext, project_id: int) -> None:
    """Soft-delete a project and its rooms; refused while any room holds items."""

    project = rbac.require_project_edit(db, ctx, project_id)
    rooms = _live_rooms(db, project.id).all()
    if _live_item_count(db, (room.id for room in rooms)):
        raise ConflictError("Project rooms still contain items. Move or delete them first.")
    now = models.utcnow()
    for room in rooms:
        room.deleted_at = now
    project.deleted_at = now
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.PROJECT_DELETED,
        ObjectType.PROJECT,
        object_id=project.id,
        board_id=project.board_id,
        payload={"rooms_deleted": len(rooms)},
    )


def list_rooms(db: Session, ctx: PrincipalContext, project_id: int) -> list[models.Room]:
    project = rbac.require_project_view(db, ctx, project_id)
    return (
        _live_rooms(db, project.id)
        .order_by(models.Room.display_order.asc(), models.Room.created_at.asc(), models.Room.id.asc())
        .all()
    )


def create_room(
    db: Session,
    ctx: PrincipalContext,
    project_id: int,
    *,
    name: str | None,
    description: str | None = None,
) -> models.Room:
    cleaned = _clean_name(name, "Room")
    project = rbac.require_project_edit(db, ctx, project_id)
    max_order = (
        db.query(sa.func.coalesce(sa.func.max(models.Room.display_order), 0))
        .filter(models.Room.project_id == project.id, models.Room.deleted_at.is_(None))
        .scalar()
    )
    room = models.Room(
        project_id=project.id,
        name=cleaned,
        description=(description or "").strip() or None,
        display_order=int(max_order or 0) + 1,
    )
    db.add(room)
    hooks.commit(db)
    db.refresh(room)
    record_event_safely(
        db,
        ctx,
        EventType.ROOM_CREATED,
        ObjectType.ROOM,
        object_id=room.id,
        board_id=project.board_id,
        payload={"project_id": project.id, "name": room.name, "display_order": room.display_order},
    )
    return room


def update_room(db: Session, ctx: PrincipalContext, room_id: int, changes: dict[str, Any]) -> models.Room:
    room = rbac.require_room_edit(db, ctx, room_id)
    applied: dict[str, Any] = {}
    if "name" in changes:
        applied["name"] = _clean_name(changes["name"], "Room")
    if "description" in changes:
        applied["description"] = (changes["description"] or "").strip() or None
    applied = {key: value for key, value in applied.items() if getattr(room, key) != value}
    if not applied:
        return room
    for key, value in applied.items():
        setattr(room, key, value)
    hooks.commit(db)
    db.refresh(room)
    record_event_safely(
        db,
        ctx,
        EventType.ROOM_UPDATED,
        ObjectType.ROOM,
        object_id=room.id,
        board_id=room.project.board_id,
        payload={"changed": sorted(applied)},
    )
    return room


def delete_room(db: Session, ctx: PrincipalContext, room_id: int) -> None:
    room = rbac.require_room_edit(db, ctx, room_id)
    if _live_item_count(db, [room.id]):
        raise ConflictError("Room still contains items. Move or delete them first.")
    board_id = room.project.board_id
    room.deleted_at = models.utcnow()
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.ROOM_DELETED,
        ObjectType.ROOM,
        object_id=room.id,
        board_id=board_id,
    )


def reorder_rooms(
    db: Session,
    ctx: PrincipalContext,
    project_id: int,
    orders: list[dict[str, Any]],
) -> list[models.Room]:
    """Apply requested orders, then renumber every live room 1..N."""

    if not orders:
        raise ValidationError("Room orders are required.")
    project = rbac.require_project_edit(db, ctx, project_id)
    rooms = {room.id: room for room in _live_rooms(db, project.id).all()}

    requested: dict[int, int] = {}
    for entry in orders:
        room_id = rbac.coerce_id(entry.get("room_id"))
        try:
            order = int(entry.get("display_order"))
        except (TypeError, ValueError) as exc:
            raise ValidationError("display_order must be an integer.") from exc
        if room_id is None or room_id not in rooms:
            raise ValidationError("Every room must belong to this project.")
        if order < 0:
            raise ValidationError("display_order must not be negative.")
        requested[room_id] = order

    ranked = sorted(
        rooms.values(),
        key=lambda room: (requested.get(room.id, room.display_order), room.display_order, room.id),
    )
    for position, room in enumerate(ranked, start=1):
        room.display_order = position
    hooks.commit(db)
    record_event_safely(
        db,
        ctx,
        EventType.ROOMS_REORDERED,
        ObjectType.PROJECT,
        object_id=project.id,
        board_id=project.board_id,
        payload={"order": [room.id for room in ranked]},
    )
    return ranked
