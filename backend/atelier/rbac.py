from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import Session

from . import membership, models
from .auth import PrincipalContext
from .errors import AuthorizationError

# purpose: server-authoritative access resolution across firm -> board -> project -> room -> item
# inputs: session handle, explicit PrincipalContext, entity identifiers
# outputs: entity rows (or None when denied/missing); write gates raising AuthorizationError
# status: active

BoardEntity = models.Board | models.Project | models.Room | models.Item


class BoardAccess(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    TEAM = "team"


class ItemAudience(str, Enum):
    DESIGNER = "designer"
    OPERATOR = "operator"
    SUPPLIER = "supplier"


def coerce_id(value) -> int | None:
    """Positive integer id or None; 0 and junk mean absent."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _live_item(db: Session, item_id) -> models.Item | None:
    item_id = coerce_id(item_id)
    if item_id is None:
        return None
    return (
        db.query(models.Item)
        .filter(models.Item.id == item_id, models.Item.deleted_at.is_(None))
        .first()
    )


def _live_board(db: Session, board_id) -> models.Board | None:
    board_id = coerce_id(board_id)
    if board_id is None:
        return None
    return (
        db.query(models.Board)
        .filter(models.Board.id == board_id, models.Board.deleted_at.is_(None))
        .first()
    )


def resolve_item(db: Session, ctx: PrincipalContext | None, item_id) -> models.Item | None:
    """Return the item when the principal is an admin or its owner."""

    if ctx is None or not ctx.user_id:
        return None
    item = _live_item(db, item_id)
    if item is None:
        return None
    if ctx.is_admin or item.owner_user_id == ctx.user_id:
        return item
    return None


def board_access(db: Session, ctx: PrincipalContext | None, board: models.Board | None) -> BoardAccess | None:
    """Classify how the principal reaches ``board``.

    Admin beats ownership, ownership beats firm membership. Firm access is
    view-only and is silently unavailable when firm storage is unprovisioned.
    """

    if ctx is None or not ctx.user_id or board is None or board.deleted_at is not None:
        return None
    if ctx.is_admin:
        return BoardAccess.ADMIN
    if board.owner_user_id == ctx.user_id:
        return BoardAccess.OWNER
    firm_id = board.owner_firm_id or membership.active_firm_id_for_user(db, board.owner_user_id)
    if firm_id and membership.is_active_firm_member(db, ctx.user_id, firm_id):
        return BoardAccess.TEAM
    return None


def resolve_board(db: Session, ctx: PrincipalContext | None, board_id) -> models.Board | None:
    if ctx is None or not ctx.user_id:
        return None
    board = _live_board(db, board_id)
    if board_access(db, ctx, board) is None:
        return None
    return board


def resolve_project(db: Session, ctx: PrincipalContext | None, project_id) -> models.Project | None:
    project_id = coerce_id(project_id)
    if ctx is None or project_id is None:
        return None
    project = (
        db.query(models.Project)
        .filter(models.Project.id == project_id, models.Project.deleted_at.is_(None))
        .first()
    )
    if project is None or resolve_board(db, ctx, project.board_id) is None:
        return None
    return project


def resolve_room(db: Session, ctx: PrincipalContext | None, room_id) -> models.Room | None:
    room_id = coerce_id(room_id)
    if ctx is None or room_id is None:
        return None
    room = (
        db.query(models.Room)
        .filter(models.Room.id == room_id, models.Room.deleted_at.is_(None))
        .first()
    )
    if room is None or resolve_project(db, ctx, room.project_id) is None:
        return None
    return room


def get_item_owner(db: Session, item_id) -> int | None:
    item = _live_item(db, item_id)
    return item.owner_user_id if item else None


def get_board_owner(db: Session, board_id) -> int | None:
    board = _live_board(db, board_id)
    return board.owner_user_id if board else None


def is_item_owner(db: Session, item_id, user_id) -> bool:
    owner = get_item_owner(db, item_id)
    return owner is not None and owner == coerce_id(user_id)


def is_board_owner(db: Session, board_id, user_id) -> bool:
    owner = get_board_owner(db, board_id)
    return owner is not None and owner == coerce_id(user_id)


def _owning_board_id(db: Session, entity: BoardEntity) -> int | None:
    if isinstance(entity, models.Board):
        return entity.id
    if isinstance(entity, models.Project):
        return entity.board_id
    if isinstance(entity, models.Room):
        return db.query(models.Project.board_id).filter(models.Project.id == entity.project_id).scalar()
    return None


def can_edit(db: Session, ctx: PrincipalContext | None, entity: BoardEntity | None) -> bool:
    """True iff the principal directly owns ``entity`` and is not a view-only team member.

    Projects and rooms are owned through their board. Admin override is not
    applied here; write gates apply it before calling this.
    """

    if ctx is None or not ctx.user_id or entity is None:
        return False
    if membership.is_view_only_team_member(db, ctx.user_id):
        return False
    if isinstance(entity, models.Item):
        return is_item_owner(db, entity.id, ctx.user_id)
    board_id = _owning_board_id(db, entity)
    return board_id is not None and is_board_owner(db, board_id, ctx.user_id)


def can_edit_item(db: Session, ctx: PrincipalContext | None, item_id) -> bool:
    return can_edit(db, ctx, _live_item(db, item_id))


def can_edit_board(db: Session, ctx: PrincipalContext | None, board_id) -> bool:
    return can_edit(db, ctx, _live_board(db, board_id))


def _may_write(db: Session, ctx: PrincipalContext, entity: BoardEntity | None) -> bool:
    if entity is None:
        return False
    return ctx.is_admin or can_edit(db, ctx, entity)


def require_item_view(db: Session, ctx: PrincipalContext, item_id) -> models.Item:
    item = resolve_item(db, ctx, item_id)
    if item is None:
        raise AuthorizationError("Item not found or access denied")
    return item


def require_item_edit(db: Session, ctx: PrincipalContext, item_id) -> models.Item:
    item = resolve_item(db, ctx, item_id)
    if not _may_write(db, ctx, item):
        raise AuthorizationError("Item not found or access denied")
    return item


def require_board_view(db: Session, ctx: PrincipalContext, board_id) -> models.Board:
    board = resolve_board(db, ctx, board_id)
    if board is None:
        raise AuthorizationError("Board not found or access denied")
    return board


def require_board_edit(db: Session, ctx: PrincipalContext, board_id) -> models.Board:
    board = resolve_board(db, ctx, board_id)
    if not _may_write(db, ctx, board):
        raise AuthorizationError("Board not found or access denied")
    return board


def require_project_view(db: Session, ctx: PrincipalContext, project_id) -> models.Project:
    project = resolve_project(db, ctx, project_id)
    if project is None:
        raise AuthorizationError("Project not found or access denied")
    return project


def require_project_edit(db: Session, ctx: PrincipalContext, project_id) -> models.Project:
    project = resolve_project(db, ctx, project_id)
    if not _may_write(db, ctx, project):
        raise AuthorizationError("Project not found or access denied")
    return project


def require_room_edit(db: Session, ctx: PrincipalContext, room_id) -> models.Room:
    room = resolve_room(db, ctx, room_id)
    if not _may_write(db, ctx, room):
        raise AuthorizationError("Room not found or access denied")
    return room


def is_routed_supplier(db: Session, item_id, supplier_id) -> bool:
    item_id, supplier_id = coerce_id(item_id), coerce_id(supplier_id)
    if item_id is None or supplier_id is None:
        return False
    route = (
        db.query(models.SupplierRoute.id)
        .filter(
            models.SupplierRoute.item_id == item_id,
            models.SupplierRoute.supplier_id == supplier_id,
        )
        .first()
    )
    return route is not None


def resolve_item_audience(
    db: Session,
    ctx: PrincipalContext | None,
    item_id,
) -> tuple[models.Item, ItemAudience] | None:
    """Resolve an item together with the view the principal is entitled to.

    Admins and operators get the operator view (submitter identities shown),
    the owner gets the designer view, a routed supplier the supplier view.
    """

    if ctx is None or not ctx.user_id:
        return None
    item = _live_item(db, item_id)
    if item is None:
        return None
    if ctx.is_admin:
        return item, ItemAudience.OPERATOR
    if item.owner_user_id == ctx.user_id:
        return item, ItemAudience.DESIGNER
    if ctx.role == models.UserRole.OPERATOR.value:
        return item, ItemAudience.OPERATOR
    if ctx.is_supplier and is_routed_supplier(db, item.id, ctx.user_id):
        return item, ItemAudience.SUPPLIER
    return None


def require_item_audience(db: Session, ctx: PrincipalContext, item_id) -> tuple[models.Item, ItemAudience]:
    resolved = resolve_item_audience(db, ctx, item_id)
    if resolved is None:
        raise AuthorizationError("Item not found or access denied")
    return resolved
