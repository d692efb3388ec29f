"""Material bank entries and their attachment to items."""

from __future__ import annotations

import math
from typing import Any

from sqlalchemy.orm import Session

from .. import hooks, models, rbac
from ..auth import PrincipalContext
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely

# purpose: curate the material bank and attach/detach bank entries on items the caller may edit
# inputs: session handle, PrincipalContext, item and material ids, quantity/unit/notes
# outputs: Material and ItemMaterial rows, attachment dicts, ledger events after each commit
# status: active

MAX_NAME_LENGTH = 255
MAX_CODE_LENGTH = 100
MAX_UNIT_LENGTH = 50
DEFAULT_UNIT = "unit"


def _active_material(db: Session, material_id) -> models.Material:
    material_id = rbac.coerce_id(material_id)
    material = db.get(models.Material, material_id) if material_id else None
    if material is None or not material.is_active or material.deleted_at is not None:
        raise NotFoundError("Material not found, inactive, or deleted.")
    return material


def _short(value: str | None, limit: int, label: str) -> str | None:
    cleaned = (value or "").strip()
    if len(cleaned) > limit:
        raise ValidationError(f"{label} exceeds maximum length of {limit} characters.")
    return cleaned or None


def create_material(
    db: Session,
    ctx: PrincipalContext,
    name: str | None,
    *,
    description: str | None = None,
    category: str | None = None,
    material_code: str | None = None,
    notes: str | None = None,
) -> models.Material:
    if not ctx.is_admin:
        raise AuthorizationError("Only administrators can manage materials.")
    cleaned_name = _short(name, MAX_NAME_LENGTH, "Material name")
    if not cleaned_name:
        raise ValidationError("Material name is required.")
    material = models.Material(
        name=cleaned_name,
        description=(description or "").strip() or None,
        category=_short(category, MAX_CODE_LENGTH, "Category"),
        material_code=_short(material_code, MAX_CODE_LENGTH, "Material code"),
        notes=(notes or "").strip() or None,
        is_active=True,
        created_by_user_id=ctx.user_id,
    )
    db.add(material)
    hooks.commit(db)
    db.refresh(material)
    record_event_safely(
        db,
        ctx,
        EventType.MATERIAL_CREATED,
        ObjectType.MATERIAL,
        object_id=material.id,
        payload={"name": material.name, "category": material.category, "material_code": material.material_code},
    )
    return material


def list_materials(db: Session, *, category: str | None = None) -> list[models.Material]:
    query = db.query(models.Material).filter(
        models.Material.is_active.is_(True),
        models.Material.deleted_at.is_(None),
    )
    if category:
        query = query.filter(models.Material.category == category)
    return query.order_by(models.Material.name.asc(), models.Material.id.asc()).all()


def _clean_quantity(quantity) -> float:
    try:
        value = float(1 if quantity is None else quantity)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Quantity must be greater than 0.") from exc
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Quantity must be greater than 0.")
    return round(value, 3)


def attach_material(
    db: Session,
    ctx: PrincipalContext,
    item_id: int,
    material_id: int,
    *,
    quantity: float | None = None,
    unit: str | None = None,
    notes: str | None = None,
) -> tuple[models.ItemMaterial, bool]:
    """Attach a bank material to an item, reviving a detached row when one exists.

    Returns the attachment and whether it was a reattach.
    """

    item = rbac.require_item_edit(db, ctx, item_id)
    material = _active_material(db, material_id)
    amount = _clean_quantity(quantity)
    unit = _short(unit, MAX_UNIT_LENGTH, "Unit") or DEFAULT_UNIT
    notes = (notes or "").strip() or None

    attachment = db.query(models.ItemMaterial).filter_by(item_id=item.id, material_id=material.id).first()
    is_reattach = attachment is not None
    if attachment is not None and attachment.is_active:
        raise ConflictError("Material is already attached to this item.")
    if attachment is None:
        attachment = models.ItemMaterial(item_id=item.id, material_id=material.id)
        db.add(attachment)
    attachment.quantity = amount
    attachment.unit = unit
    attachment.notes = notes
    attachment.is_active = True
    attachment.attached_by_user_id = ctx.user_id
    attachment.attached_at = models.utcnow()
    attachment.detached_at = None
    hooks.commit(db)
    db.refresh(attachment)
    record_event_safely(
        db,
        ctx,
        EventType.MATERIAL_ATTACHED_TO_ITEM,
        ObjectType.ITEM,
        object_id=item.id,
        item_id=item.id,
        payload={
            "attachment_id": attachment.id,
            "material_id": material.id,
            "quantity": attachment.quantity,
            "unit": attachment.unit,
            "attached_by_user_id": ctx.user_id,
            "is_reattach": is_reattach,
        },
    )
    return attachment, is_reattach


def detach_material(db: Session, ctx: PrincipalContext, item_id: int, material_id: int) -> models.ItemMaterial:
    item = rbac.require_item_edit(db, ctx, item_id)
    attachment = (
        db.query(models.ItemMaterial)
        .filter_by(item_id=item.id, material_id=rbac.coerce_id(material_id), is_active=True)
        .first()
    )
    if attachment is None:
        raise NotFoundError("Material is not attached to this item.")
    attachment.is_active = False
    attachment.detached_at = models.utcnow()
    hooks.commit(db)
    db.refresh(attachment)
    record_event_safely(
        db,
        ctx,
        EventType.MATERIAL_DETACHED_FROM_ITEM,
        ObjectType.ITEM,
        object_id=item.id,
        item_id=item.id,
        payload={
            "attachment_id": attachment.id,
            "material_id": attachment.material_id,
            "detached_by_user_id": ctx.user_id,
        },
    )
    return attachment


def list_item_materials(db: Session, ctx: PrincipalContext, item_id: int) -> list[models.ItemMaterial]:
    item = rbac.require_item_view(db, ctx, item_id)
    return (
        db.query(models.ItemMaterial)
        .filter_by(item_id=item.id, is_active=True)
        .order_by(models.ItemMaterial.attached_at.asc(), models.ItemMaterial.id.asc())
        .all()
    )


def attachment_view(attachment: models.ItemMaterial) -> dict[str, Any]:
    material = attachment.material
    return {
        "attachment_id": attachment.id,
        "item_id": attachment.item_id,
        "material_id": attachment.material_id,
        "name": material.name if material else None,
        "category": material.category if material else None,
        "material_code": material.material_code if material else None,
        "quantity": attachment.quantity,
        "unit": attachment.unit,
        "notes": attachment.notes,
        "attached_by_user_id": attachment.attached_by_user_id,
        "attached_at": attachment.attached_at.isoformat() if attachment.attached_at else None,
    }
