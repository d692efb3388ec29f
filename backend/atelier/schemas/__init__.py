"""Pydantic schemas for the collaboration API."""

# purpose: request bodies and response shapes for auth, boards, projects, rooms and items
# status: active

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .timeline import (
    EvidenceCommentCreate,
    EvidenceCommentOut,
    MediaEvidenceCreate,
    ProjectCommentCreate,
    ProjectCommentUpdate,
    StepCommentCreate,
    StepCommentOut,
    StepComplete,
    StepEvidenceSubmit,
    StepStart,
    StepVideoSubmit,
)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    display_name: Optional[str] = None
    role: Literal["designer", "supplier", "operator"] = "designer"


class UserOut(BaseModel):
    id: int
    email: EmailStr
    display_name: Optional[str] = None
    role: str
    is_admin: bool = False
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class BoardCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    view_mode: Optional[str] = None
    owner_firm_id: Optional[int] = None


class BoardUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    view_mode: Optional[str] = None


class BoardOut(BaseModel):
    id: int
    owner_user_id: int
    owner_firm_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    view_mode: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class BoardItemAdd(BaseModel):
    item_id: int


class BoardItemOut(BaseModel):
    id: int
    board_id: int
    item_id: int
    added_by_user_id: int
    added_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class LayoutSave(BaseModel):
    items: Any = None


class PlacementLayoutUpdate(BaseModel):
    position_x: float = 0.0
    position_y: float = 0.0
    position_z: int = 0
    size_width: Optional[float] = None
    size_height: Optional[float] = None
    view_mode: Optional[str] = None


class ProjectCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class ProjectOut(BaseModel):
    id: int
    board_id: int
    name: str
    description: Optional[str] = None
    status: str
    created_by_user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RoomCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class RoomUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class RoomOut(BaseModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    display_order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RoomOrder(BaseModel):
    room_id: Any = None
    display_order: Any = None


class RoomReorder(BaseModel):
    orders: list[RoomOrder] = Field(default_factory=list)


DimensionValue = Optional[Union[float, str]]


class ItemFields(BaseModel):
    """Writable item fields; unknown keys are kept so the service can reject them by name."""

    title: Optional[str] = None
    description: Optional[str] = None
    item_type: Optional[str] = None
    status: Optional[str] = None
    sourcing_type: Optional[str] = None
    dimension_width: DimensionValue = None
    dimension_depth: DimensionValue = None
    dimension_height: DimensionValue = None
    dimension_units_original: Optional[str] = None
    model_config = ConfigDict(extra="allow")


class ItemCreate(ItemFields):
    board_id: Optional[int] = None
    room_id: Optional[int] = None


class ItemOut(BaseModel):
    id: int
    owner_user_id: int
    room_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    item_type: str
    status: str
    sourcing_type: Optional[str] = None
    timeline_type: Optional[str] = None
    dimension_width_cm: Optional[float] = None
    dimension_depth_cm: Optional[float] = None
    dimension_height_cm: Optional[float] = None
    dimension_units_original: Optional[str] = None
    dimension_width_original: Optional[float] = None
    dimension_depth_original: Optional[float] = None
    dimension_height_original: Optional[float] = None
    cbm: Optional[float] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class RoomAssign(BaseModel):
    room_id: Optional[int] = None


class SupplierRouteCreate(BaseModel):
    supplier_id: int


class MaterialCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    material_code: Optional[str] = None
    notes: Optional[str] = None


class MaterialOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    material_code: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class MaterialAttach(BaseModel):
    material_id: int
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None


__all__ = [
    "BoardCreate",
    "BoardItemAdd",
    "BoardItemOut",
    "BoardOut",
    "BoardUpdate",
    "EvidenceCommentCreate",
    "EvidenceCommentOut",
    "ItemCreate",
    "ItemFields",
    "ItemOut",
    "LayoutSave",
    "LoginRequest",
    "MaterialAttach",
    "MaterialCreate",
    "MaterialOut",
    "MediaEvidenceCreate",
    "PlacementLayoutUpdate",
    "ProjectCommentCreate",
    "ProjectCommentUpdate",
    "ProjectCreate",
    "ProjectOut",
    "ProjectUpdate",
    "RoomAssign",
    "RoomCreate",
    "RoomOrder",
    "RoomOut",
    "RoomReorder",
    "RoomUpdate",
    "StepCommentCreate",
    "StepCommentOut",
    "StepComplete",
    "StepEvidenceSubmit",
    "StepStart",
    "StepVideoSubmit",
    "SupplierRouteCreate",
    "Token",
    "UserCreate",
    "UserOut",
]
