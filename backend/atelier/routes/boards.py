from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import boards as board_service
from . import dump, ok
from .auth import rate_limit

router = APIRouter(prefix="/api/boards", tags=["boards"])


def _board_body(board, access) -> dict:
    body = dump(schemas.BoardOut, board)
    body["access"] = access.value if access else None
    return body


@router.post("")
async def create_board(
    data: schemas.BoardCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    board = board_service.create_board(
        db,
        ctx,
        name=data.name,
        description=data.description,
        view_mode=data.view_mode,
        owner_firm_id=data.owner_firm_id,
    )
    return ok("Board created successfully.", board_id=board.id, board=dump(schemas.BoardOut, board))


@router.get("")
async def list_boards(
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    boards = board_service.list_boards(db, ctx)
    return ok(boards=[_board_body(board, access) for board, access in boards])


@router.get("/{board_id}")
async def get_board(
    board_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    board, access = board_service.get_board(db, ctx, board_id)
    return ok(board=_board_body(board, access))


@router.patch("/{board_id}")
async def update_board(
    board_id: int,
    data: schemas.BoardUpdate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    board = board_service.update_board(db, ctx, board_id, data.model_dump(exclude_unset=True))
    return ok("Board updated successfully.", board=dump(schemas.BoardOut, board))


@router.delete("/{board_id}")
async def delete_board(
    board_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    board_service.delete_board(db, ctx, board_id)
    return ok("Board deleted.", board_id=board_id)


@router.get("/{board_id}/items")
async def list_board_items(
    board_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    placements = board_service.list_board_items(db, ctx, board_id)
    return ok(items=dump(schemas.BoardItemOut, placements))


@router.post("/{board_id}/items")
async def add_item_to_board(
    board_id: int,
    data: schemas.BoardItemAdd,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    placement = board_service.add_item_to_board(db, ctx, board_id, data.item_id)
    return ok("Item added to board successfully.", board_id=placement.board_id, item_id=placement.item_id)


@router.delete("/{board_id}/items/{item_id}")
async def remove_item_from_board(
    board_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    placement = board_service.remove_item_from_board(db, ctx, board_id, item_id)
    return ok("Item removed from board successfully.", board_id=placement.board_id, item_id=placement.item_id)


@router.get("/{board_id}/items/{item_id}/history")
async def board_item_history(
    board_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    rows = board_service.board_item_history(db, ctx, board_id, item_id)
    return ok(history=dump(schemas.BoardItemOut, rows))


@router.get("/{board_id}/layout")
@rate_limit("100/minute")
async def get_board_layout(
    request: Request,
    board_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(**board_service.get_board_layout(db, ctx, board_id))


@router.post("/{board_id}/layout")
@rate_limit("100/minute")
async def save_board_layout(
    request: Request,
    board_id: int,
    data: schemas.LayoutSave,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    result = board_service.save_board_layout(db, ctx, board_id, data.items)
    return ok("Layout saved successfully.", **result)


@router.get("/{board_id}/items/{item_id}/layout")
async def get_item_layout(
    board_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(layout=board_service.get_item_layout(db, ctx, board_id, item_id))


@router.put("/{board_id}/items/{item_id}/layout")
@rate_limit("100/minute")
async def update_item_layout(
    request: Request,
    board_id: int,
    item_id: int,
    data: schemas.PlacementLayoutUpdate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    layout = board_service.update_item_layout(db, ctx, board_id, item_id, **data.model_dump())
    return ok("Board layout updated successfully.", layout=layout)
