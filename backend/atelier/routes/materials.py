from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import materials as material_service
from . import dump, ok

router = APIRouter(prefix="/api", tags=["materials"])


@router.get("/materials")
async def list_materials(
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(materials=dump(schemas.MaterialOut, material_service.list_materials(db, category=category)))


@router.post("/materials")
async def create_material(
    data: schemas.MaterialCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    material = material_service.create_material(
        db,
        ctx,
        data.name,
        description=data.description,
        category=data.category,
        material_code=data.material_code,
        notes=data.notes,
    )
    return ok("Material created.", material=dump(schemas.MaterialOut, material))


@router.get("/items/{item_id}/materials")
async def list_item_materials(
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    rows = material_service.list_item_materials(db, ctx, item_id)
    return ok(materials=[material_service.attachment_view(row) for row in rows])


@router.post("/items/{item_id}/materials")
async def attach_material(
    item_id: int,
    data: schemas.MaterialAttach,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    attachment, is_reattach = material_service.attach_material(
        db,
        ctx,
        item_id,
        data.material_id,
        quantity=data.quantity,
        unit=data.unit,
        notes=data.notes,
    )
    return ok(
        "Material attached successfully.",
        attachment_id=attachment.id,
        item_id=attachment.item_id,
        material_id=attachment.material_id,
        is_reattach=is_reattach,
    )


@router.delete("/items/{item_id}/materials/{material_id}")
async def detach_material(
    item_id: int,
    material_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    attachment = material_service.detach_material(db, ctx, item_id, material_id)
    return ok(
        "Material detached successfully.",
        attachment_id=attachment.id,
        item_id=attachment.item_id,
        material_id=attachment.material_id,
    )
