from datetime import datetime, timezone
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    Float,
    event,
)
from sqlalchemy.orm import relationship

from .database import Base
from .errors import StorageError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    DESIGNER = "designer"
    SUPPLIER = "supplier"
    OPERATOR = "operator"
    TEAM_MEMBER = "team_member"


class FirmMemberStatus(str, Enum):
    ACTIVE = "active"
    INVITED = "invited"
    REMOVED = "removed"


class BoardViewMode(str, Enum):
    GRID = "grid"
    LIST = "list"
    THREE_D = "3d"


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ItemStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ItemType(str, Enum):
    FURNITURE = "furniture"
    LIGHTING = "lighting"
    ACCESSORY = "accessory"
    ART = "art"
    OTHER = "other"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class VideoProvider(str, Enum):
    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    LOOM = "loom"


class MediaType(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    YOUTUBE = "youtube"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    display_name = Column(String(255))
    role = Column(String(32), nullable=False, default=UserRole.DESIGNER.value)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        sa.CheckConstraint(
            "role IN ('designer', 'supplier', 'operator', 'team_member')",
            name="ck_users_role",
        ),
    )


class Firm(Base):
    __tablename__ = "firms"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)


class FirmMember(Base):
    __tablename__ = "firm_members"

    # purpose: delegated firm membership backing view-only board access
    # status: active; table may be absent in deployments without firms

    id = Column(Integer, primary_key=True, autoincrement=True)
    firm_id = Column(Integer, ForeignKey("firms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(32), nullable=False, default="member")
    status = Column(String(32), nullable=False, default=FirmMemberStatus.ACTIVE.value)
    invited_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    joined_at = Column(DateTime, default=utcnow)
    left_at = Column(DateTime, nullable=True)


class Board(Base):
    __tablename__ = "boards"
    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_firm_id = Column(Integer, ForeignKey("firms.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    view_mode = Column(String(16), nullable=False, default=BoardViewMode.GRID.value)
    latest_layout_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    projects = relationship("Project", back_populates="board")


class Project(Base):
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True, autoincrement=True)
    board_id = Column(Integer, ForeignKey("boards.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=ProjectStatus.DRAFT.value)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    board = relationship("Board", back_populates="projects")
    rooms = relationship("Room", back_populates="project", order_by="Room.display_order")


class Room(Base):
    __tablename__ = "rooms"
    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    project = relationship("Project", back_populates="rooms")


class Item(Base):
    __tablename__ = "items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    item_type = Column(String(100), nullable=False, default=ItemType.OTHER.value)
    status = Column(String(50), nullable=False, default=ItemStatus.DRAFT.value)
    sourcing_type = Column(String(50), nullable=True)
    timeline_type = Column(String(20), nullable=True)
    dimension_width_cm = Column(Float, nullable=True)
    dimension_depth_cm = Column(Float, nullable=True)
    dimension_height_cm = Column(Float, nullable=True)
    dimension_units_original = Column(String(20), nullable=True)
    dimension_width_original = Column(Float, nullable=True)
    dimension_depth_original = Column(Float, nullable=True)
    dimension_height_original = Column(Float, nullable=True)
    cbm = Column(Float, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    room = relationship("Room")


class BoardItem(Base):
    __tablename__ = "board_items"

    # purpose: board/item association with soft removal so add/remove history survives
    # status: active

    id = Column(Integer, primary_key=True, autoincrement=True)
    board_id = Column(Integer, ForeignKey("boards.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    added_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    added_at = Column(DateTime, default=utcnow)
    removed_at = Column(DateTime, nullable=True)

    item = relationship("Item")


class BoardLayout(Base):
    __tablename__ = "board_layouts"

    # purpose: per-placement position, stacking order and size of an item on a board
    # status: active

    id = Column(Integer, primary_key=True, autoincrement=True)
    board_id = Column(Integer, ForeignKey("boards.id"), nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    position_x = Column(Float, nullable=False, default=0)
    position_y = Column(Float, nullable=False, default=0)
    position_z = Column(Integer, nullable=False, default=0)
    size_width = Column(Float, nullable=True)
    size_height = Column(Float, nullable=True)
    view_mode = Column(String(20), nullable=False, default=BoardViewMode.GRID.value)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        sa.UniqueConstraint("board_id", "item_id", name="uq_board_layout_placement"),
    )


class SupplierRoute(Base):
    __tablename__ = "supplier_routes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        sa.UniqueConstraint("item_id", "supplier_id", name="uq_supplier_route"),
    )


class ItemTimeline(Base):
    __tablename__ = "item_timelines"
    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, unique=True)
    created_at = Column(DateTime, default=utcnow)

    steps = relationship(
        "ItemTimelineStep",
        back_populates="timeline",
        order_by="ItemTimelineStep.step_number",
        cascade="all, delete-orphan",
    )


class ItemTimelineStep(Base):
    __tablename__ = "item_timeline_steps"
    id = Column(Integer, primary_key=True, autoincrement=True)
    timeline_id = Column(Integer, ForeignKey("item_timelines.id"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    label = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default=StepStatus.PENDING.value)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    expected_by = Column(DateTime, nullable=True)
    evidence_required = Column(Boolean, nullable=False, default=True)
    evidence_verified_at = Column(DateTime, nullable=True)
    evidence_verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    timeline = relationship("ItemTimeline", back_populates="steps")

    __table_args__ = (
        sa.UniqueConstraint("timeline_id", "step_number", name="uq_timeline_step_number"),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed')",
            name="ck_timeline_step_status",
        ),
    )


class Event(Base):
    __tablename__ = "events"

    # purpose: append-only audit spine; rows are written once and never changed
    # status: active

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_user_id = Column(Integer, nullable=False, index=True)
    actor_firm_id = Column(Integer, nullable=True)
    event_type = Column(String(100), nullable=False, index=True)
    object_type = Column(String(50), nullable=False)
    object_id = Column(Integer, nullable=True)
    item_id = Column(Integer, nullable=True, index=True)
    board_id = Column(Integer, nullable=True, index=True)
    payload_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class StepEvidenceSubmission(Base):
    __tablename__ = "step_evidence_submissions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    timeline_step_id = Column(Integer, ForeignKey("item_timeline_steps.id"), nullable=False)
    supplier_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    bid_id = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False)
    link_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    links = relationship(
        "StepEvidenceLink",
        back_populates="submission",
        order_by="StepEvidenceLink.sort_order",
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "item_id",
            "timeline_step_id",
            "supplier_id",
            "version",
            name="uq_step_evidence_version",
        ),
    )


class StepEvidenceLink(Base):
    __tablename__ = "step_evidence_links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(Integer, ForeignKey("step_evidence_submissions.id"), nullable=False, index=True)
    provider = Column(String(16), nullable=False)
    url = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    submission = relationship("StepEvidenceSubmission", back_populates="links")


class TimelineStepVideoSubmission(Base):
    __tablename__ = "timeline_step_video_submissions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    supplier_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    operator_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    version = Column(Integer, nullable=False)
    optional_note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    links = relationship(
        "TimelineStepVideoLink",
        back_populates="submission",
        order_by="TimelineStepVideoLink.sort_order",
    )

    __table_args__ = (
        sa.UniqueConstraint("item_id", "step_number", "version", name="uq_step_video_version"),
        sa.CheckConstraint(
            "(supplier_id IS NULL) <> (operator_id IS NULL)",
            name="ck_step_video_single_source",
        ),
        sa.CheckConstraint("step_number IN (4, 5, 6)", name="ck_step_video_step"),
    )

    @property
    def source(self) -> str:
        return "operator" if self.operator_id is not None else "supplier"


class TimelineStepVideoLink(Base):
    __tablename__ = "timeline_step_video_links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        Integer, ForeignKey("timeline_step_video_submissions.id"), nullable=False, index=True
    )
    provider = Column(String(16), nullable=False)
    url = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    submission = relationship("TimelineStepVideoSubmission", back_populates="links")


class TimelineStepComment(Base):
    __tablename__ = "timeline_step_comments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    designer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    media_version = Column(Integer, nullable=True)
    comment_text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        sa.CheckConstraint("step_number IN (4, 5, 6)", name="ck_step_comment_step"),
    )


class TimelineStepEvidence(Base):
    __tablename__ = "timeline_step_evidence"
    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    step_id = Column(Integer, ForeignKey("item_timeline_steps.id"), nullable=False, index=True)
    media_type = Column(String(16), nullable=False)
    file_path = Column(Text, nullable=True)
    youtube_url = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    hidden = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        sa.CheckConstraint("media_type IN ('image', 'pdf', 'youtube')", name="ck_step_evidence_media"),
    )


class EvidenceComment(Base):
    __tablename__ = "evidence_comments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    evidence_id = Column(Integer, ForeignKey("timeline_step_evidence.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    comment_text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ProjectComment(Base):
    __tablename__ = "project_comments"

    # purpose: the mutable, threaded discussion attached to a project
    # status: active

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    item_ref = Column(String(100), nullable=True)
    video_ref = Column(String(100), nullable=True)
    parent_comment_id = Column(Integer, ForeignKey("project_comments.id"), nullable=True)
    is_urgent = Column(Boolean, nullable=False, default=False)
    comment_text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    author = relationship("User")


APPEND_ONLY_MODELS = (
    Event,
    StepEvidenceSubmission,
    StepEvidenceLink,
    TimelineStepVideoSubmission,
    TimelineStepVideoLink,
    TimelineStepComment,
    TimelineStepEvidence,
    EvidenceComment,
)


def _changed_columns(target) -> list[str]:
    state = sa.inspect(target)
    return [
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    ]


def _reject_update(mapper, connection, target):
    changed = _changed_columns(target)
    if changed:
        raise StorageError(
            f"{type(target).__name__} rows are append-only (attempted change: {', '.join(changed)})"
        )


def _reject_delete(mapper, connection, target):
    raise StorageError(f"{type(target).__name__} rows are append-only")


for _model in APPEND_ONLY_MODELS:
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_delete)


class Material(Base):
    __tablename__ = "materials"

    # purpose: reference bank of materials designers can attach to items
    # status: active

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    material_code = Column(String(100), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)


class ItemMaterial(Base):
    __tablename__ = "item_materials"

    # purpose: item/material attachment; detaching flips is_active so a reattach reuses the row
    # status: active

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    quantity = Column(Float, nullable=False, default=1.0)
    unit = Column(String(50), nullable=False, default="unit")
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    attached_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    attached_at = Column(DateTime, default=utcnow, nullable=False)
    detached_at = Column(DateTime, nullable=True)

    material = relationship("Material")

    __table_args__ = (
        sa.UniqueConstraint("item_id", "material_id", name="uq_item_material"),
    )
