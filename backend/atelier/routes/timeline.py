from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import timeline as timeline_service
from . import ok

router = APIRouter(prefix="/api/items/{item_id}/timeline", tags=["timeline"])


@router.get("")
async def get_timeline(
    item_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(timeline=timeline_service.get_timeline(db, ctx, item_id))


@router.post("/steps/{step_number}/start")
async def start_step(
    item_id: int,
    step_number: int,
    data: schemas.StepStart | None = None,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    expected_by = data.expected_by if data else None
    step = timeline_service.start_step(db, ctx, item_id, step_number, expected_by=expected_by)
    return ok("Step started.", step=timeline_service.step_view(step))


@router.post("/steps/{step_number}/complete")
async def complete_step(
    item_id: int,
    step_number: int,
    data: schemas.StepComplete | None = None,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    override = data.evidence_verified_override if data else False
    step = timeline_service.complete_step(db, ctx, item_id, step_number, evidence_verified_override=override)
    return ok("Step completed.", step=timeline_service.step_view(step))


@router.post("/steps/{step_number}/verify-evidence")
async def verify_evidence(
    item_id: int,
    step_number: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    step = timeline_service.set_evidence_verified(db, ctx, item_id, step_number)
    return ok("Evidence marked as verified.", step=timeline_service.step_view(step))
