"""Add per-placement board layouts and the material bank."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260102_01"
down_revision: str | Sequence[str] | None = "20260101_01"
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


def _user_fk(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id"), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "board_layouts",
        _id(),
        sa.Column("board_id", sa.Integer(), sa.ForeignKey("boards.id"), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("position_x", sa.Float(), nullable=False, server_default="0"),
        sa.Column("position_y", sa.Float(), nullable=False, server_default="0"),
        sa.Column("position_z", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("size_width", sa.Float(), nullable=True),
        sa.Column("size_height", sa.Float(), nullable=True),
        sa.Column("view_mode", sa.String(length=20), nullable=False, server_default="grid"),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("board_id", "item_id", name="uq_board_layout_placement"),
    )
    op.create_table(
        "materials",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True, index=True),
        sa.Column("material_code", sa.String(length=100), nullable=True, index=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _user_fk("created_by_user_id"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "item_materials",
        _id(),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False, index=True),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id"), nullable=False, index=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("unit", sa.String(length=50), nullable=False, server_default="unit"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _user_fk("attached_by_user_id"),
        sa.Column("attached_at", sa.DateTime(), nullable=False),
        sa.Column("detached_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("item_id", "material_id", name="uq_item_material"),
    )


def downgrade() -> None:
    op.drop_table("item_materials")
    op.drop_table("materials")
    op.drop_table("board_layouts")
