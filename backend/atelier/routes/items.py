from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import items as item_service
from . import dump, ok

router = APIRouter(prefix="/api/items", tags=["items"])


@router.post("")
async def create_item(
    data: schemas.ItemCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    fields = data.model_dump(exclude_unset=True)
    board_id = fields.pop("board_id", None)
    room_id = fields.pop("room_id", None)
    item, added_to_board = item_service.create_item(db, ctx, fields, board_id=board_id, room_id=room_id)
    return ok(
        "Item created successfully.",
        item_id=item.id,
        item=dump(schemas.ItemOut, item),
        added_to_board=added_to_board,
        board_id=board_id if added_to_board else None,
    )


@router.get("")
async def list_items(
    room_id: Optional[int] = None,
    board_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    items = item_service.list_items(db, ctx, room_id=room_id, board_id=board_id, limit=limit, offset=offset)
    return ok(items=dump(schemas.ItemOut, items))


@router.get("/{item_id}")
async def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(item=dump(schemas.ItemOut, item_service.get_item(db, ctx, item_id)))


@router.patch("/{item_id}")
async def update_item(
    item_id: int,
    data: schemas.ItemFields,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    item, changed_fields = item_service.update_item(db, ctx, item_id, data.model_dump(exclude_unset=True))
    if not changed_fields:
        return ok("No changes to update.", item_id=item.id)
    return ok(
        "Item updated successfully.",
        item_id=item.id,
        changed_fields=[change["field"] for change in changed_fields],
        intelligence={"cbm": item.cbm, "timeline_type": item.timeline_type},
        item=dump(schemas.ItemOut, item),
    )


@router.delete("/{item_id}")
async def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    item_service.delete_item(db, ctx, item_id)
    return ok("Item deleted.", item_id=item_id)


@router.put("/{item_id}/room")
async def assign_item_to_room(
    item_id: int,
    data: schemas.RoomAssign,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    item = item_service.assign_item_to_room(db, ctx, item_id, data.room_id)
    return ok("Item room updated.", item_id=item.id, room_id=item.room_id)


@router.post("/{item_id}/suppliers")
async def add_supplier_route(
    item_id: int,
    data: schemas.SupplierRouteCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    route = item_service.add_supplier_route(db, ctx, item_id, data.supplier_id)
    return ok("Supplier routed to item.", item_id=route.item_id, supplier_id=route.supplier_id)
