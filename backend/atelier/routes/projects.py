from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..auth import PrincipalContext, get_current_principal
from ..services import projects as project_service
from . import dump, ok

router = APIRouter(prefix="/api", tags=["projects"])


@router.post("/boards/{board_id}/projects")
async def create_project(
    board_id: int,
    data: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    project = project_service.create_project(db, ctx, board_id, name=data.name, description=data.description)
    return ok("Project created successfully.", project=dump(schemas.ProjectOut, project))


@router.get("/boards/{board_id}/projects")
async def list_projects(
    board_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(projects=dump(schemas.ProjectOut, project_service.list_projects(db, ctx, board_id)))


@router.get("/projects/{project_id}")
async def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(project=dump(schemas.ProjectOut, project_service.get_project(db, ctx, project_id)))


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: int,
    data: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    project = project_service.update_project(db, ctx, project_id, data.model_dump(exclude_unset=True))
    return ok("Project updated successfully.", project=dump(schemas.ProjectOut, project))


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    project_service.delete_project(db, ctx, project_id)
    return ok("Project deleted.", project_id=project_id)


@router.get("/projects/{project_id}/rooms")
async def list_rooms(
    project_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    return ok(rooms=dump(schemas.RoomOut, project_service.list_rooms(db, ctx, project_id)))


@router.post("/projects/{project_id}/rooms")
async def create_room(
    project_id: int,
    data: schemas.RoomCreate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    room = project_service.create_room(db, ctx, project_id, name=data.name, description=data.description)
    return ok("Room created successfully.", room=dump(schemas.RoomOut, room))


@router.post("/projects/{project_id}/rooms/reorder")
async def reorder_rooms(
    project_id: int,
    data: schemas.RoomReorder,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    rooms = project_service.reorder_rooms(db, ctx, project_id, [order.model_dump() for order in data.orders])
    return ok("Rooms reordered.", rooms=dump(schemas.RoomOut, rooms))


@router.patch("/rooms/{room_id}")
async def update_room(
    room_id: int,
    data: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    room = project_service.update_room(db, ctx, room_id, data.model_dump(exclude_unset=True))
    return ok("Room updated successfully.", room=dump(schemas.RoomOut, room))


@router.delete("/rooms/{room_id}")
async def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    ctx: PrincipalContext = Depends(get_current_principal),
):
    project_service.delete_room(db, ctx, room_id)
    return ok("Room deleted.", room_id=room_id)
