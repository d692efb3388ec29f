from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import PrincipalContext, get_current_principal
from ..eventlog import event_to_dict, list_events
from . import ok

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("")
async def read_events(
    item_id: Optional[int] = None,
    board_id: Optional[int] = None,
    event_type: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    events = list_events(
        db, ctx, item_id=item_id, board_id=board_id, event_type=event_type, limit=limit, offset=offset
    )
    return ok(events=[event_to_dict(event) for event in events])
