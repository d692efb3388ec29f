"""Create the collaboration schema: boards, projects, items, timelines, ledgers."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260101_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


def _user_fk(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id"), nullable=nullable)


def upgrade() -> None:
    """Create every table in dependency order."""

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="designer"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "role IN ('designer', 'supplier', 'operator', 'team_member')",
            name="ck_users_role",
        ),
    )
    op.create_table(
        "firms",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        _user_fk("created_by_user_id", nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "firm_members",
        _id(),
        sa.Column("firm_id", sa.Integer(), sa.ForeignKey("firms.id"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="member"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        _user_fk("invited_by_user_id", nullable=True),
        sa.Column("joined_at", sa.DateTime(), nullable=True),
        sa.Column("left_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "boards",
        _id(),
        sa.Column("owner_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("owner_firm_id", sa.Integer(), sa.ForeignKey("firms.id"), nullable=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("view_mode", sa.String(16), nullable=False, server_default="grid"),
        sa.Column("latest_layout_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "projects",
        _id(),
        sa.Column("board_id", sa.Integer(), sa.ForeignKey("boards.id"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        _user_fk("created_by_user_id", nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "rooms",
        _id(),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "items",
        _id(),
        sa.Column("owner_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True, index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("item_type", sa.String(100), nullable=False, server_default="other"),
        sa.Column("status", sa.String(50), nullable=False, server_default="draft"),
        sa.Column("sourcing_type", sa.String(50), nullable=True),
        sa.Column("timeline_type", sa.String(20), nullable=True),
        sa.Column("dimension_width_cm", sa.Float(), nullable=True),
        sa.Column("dimension_depth_cm", sa.Float(), nullable=True),
        sa.Column("dimension_height_cm", sa.Float(), nullable=True),
        sa.Column("dimension_units_original", sa.String(20), nullable=True),
        sa.Column("dimension_width_original", sa.Float(), nullable=True),
        sa.Column("dimension_depth_original", sa.Float(), nullable=True),
        sa.Column("dimension_height_original", sa.Float(), nullable=True),
        sa.Column("cbm", sa.Float(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "board_items",
        _id(),
        sa.Column("board_id", sa.Integer(), sa.ForeignKey("boards.id"), nullable=False, index=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        _user_fk("added_by_user_id"),
        sa.Column("added_at", sa.DateTime(), nullable=True),
        sa.Column("removed_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "supplier_routes",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("item_id", "supplier_id", name="uq_supplier_route"),
    )
    op.create_table(
        "item_timelines",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "item_timeline_steps",
        _id(),
        sa.Column("timeline_id", sa.Integer(), sa.ForeignKey("item_timelines.id"), nullable=False, index=True),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("expected_by", sa.DateTime(), nullable=True),
        sa.Column("evidence_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("evidence_verified_at", sa.DateTime(), nullable=True),
        _user_fk("evidence_verified_by", nullable=True),
        sa.UniqueConstraint("timeline_id", "step_number", name="uq_timeline_step_number"),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed')",
            name="ck_timeline_step_status",
        ),
    )
    op.create_table(
        "events",
        _id(),
        sa.Column("actor_user_id", sa.Integer(), nullable=False, index=True),
        sa.Column("actor_firm_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("object_type", sa.String(50), nullable=False),
        sa.Column("object_id", sa.Integer(), nullable=True),
        sa.Column("item_id", sa.Integer(), nullable=True, index=True),
        sa.Column("board_id", sa.Integer(), nullable=True, index=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "step_evidence_submissions",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("timeline_step_id", sa.Integer(), sa.ForeignKey("item_timeline_steps.id"), nullable=False),
        _user_fk("supplier_id"),
        sa.Column("bid_id", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("link_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "item_id",
            "timeline_step_id",
            "supplier_id",
            "version",
            name="uq_step_evidence_version",
        ),
    )
    op.create_table(
        "step_evidence_links",
        _id(),
        sa.Column(
            "submission_id",
            sa.Integer(),
            sa.ForeignKey("step_evidence_submissions.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("provider", sa.String(16), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "timeline_step_video_submissions",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("step_number", sa.Integer(), nullable=False),
        _user_fk("supplier_id", nullable=True),
        _user_fk("operator_id", nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("optional_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("item_id", "step_number", "version", name="uq_step_video_version"),
        sa.CheckConstraint(
            "(supplier_id IS NULL) <> (operator_id IS NULL)",
            name="ck_step_video_single_source",
        ),
        sa.CheckConstraint("step_number IN (4, 5, 6)", name="ck_step_video_step"),
    )
    op.create_table(
        "timeline_step_video_links",
        _id(),
        sa.Column(
            "submission_id",
            sa.Integer(),
            sa.ForeignKey("timeline_step_video_submissions.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("provider", sa.String(16), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "timeline_step_comments",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("step_number", sa.Integer(), nullable=False),
        _user_fk("designer_id"),
        sa.Column("media_version", sa.Integer(), nullable=True),
        sa.Column("comment_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("step_number IN (4, 5, 6)", name="ck_step_comment_step"),
    )
    op.create_table(
        "timeline_step_evidence",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("step_id", sa.Integer(), sa.ForeignKey("item_timeline_steps.id"), nullable=False, index=True),
        sa.Column("media_type", sa.String(16), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("youtube_url", sa.Text(), nullable=True),
        _user_fk("created_by"),
        sa.Column("hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("media_type IN ('image', 'pdf', 'youtube')", name="ck_step_evidence_media"),
    )
    op.create_table(
        "evidence_comments",
        _id(),
        sa.Column(
            "evidence_id",
            sa.Integer(),
            sa.ForeignKey("timeline_step_evidence.id"),
            nullable=False,
            index=True,
        ),
        _user_fk("user_id"),
        sa.Column("comment_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "project_comments",
        _id(),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False, index=True),
        _user_fk("user_id"),
        sa.Column("item_ref", sa.String(100), nullable=True),
        sa.Column("video_ref", sa.String(100), nullable=True),
        sa.Column("parent_comment_id", sa.Integer(), sa.ForeignKey("project_comments.id"), nullable=True),
        sa.Column("is_urgent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("comment_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""

    for table in (
        "project_comments",
        "evidence_comments",
        "timeline_step_evidence",
        "timeline_step_comments",
        "timeline_step_video_links",
        "timeline_step_video_submissions",
        "step_evidence_links",
        "step_evidence_submissions",
        "events",
        "item_timeline_steps",
        "item_timelines",
        "supplier_routes",
        "board_items",
        "items",
        "rooms",
        "projects",
        "boards",
        "firm_members",
        "firms",
        "users",
    ):
        op.drop_table(table)
