"""Initial CropCare schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202606010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "farming_plans",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("id", sa.String(length=120), nullable=False),
        sa.Column("crop_type", sa.Text(), nullable=False),
        sa.Column("crop_name", sa.Text(), nullable=False),
        sa.Column("crop_family", sa.String(length=32), nullable=False, server_default=sa.text("'generic'")),
        sa.Column("area_acres", sa.Float(), nullable=False),
        sa.Column("planting_date", sa.Date(), nullable=False),
        sa.Column("expected_harvest_date", sa.Date(), nullable=False),
        sa.Column("cleanup_after_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("source", sa.String(length=20), nullable=True),
        sa.Column("title_i18n", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("overview_i18n", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "watering_rules",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "recurring_tasks",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "one_off_tasks",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("oracle_attempted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("oracle_error", sa.Text(), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "notification_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "id"),
    )
    op.create_index("ix_farming_plans_user_status", "farming_plans", ["user_id", "status"], unique=False)
    op.create_index("ix_farming_plans_cleanup_after", "farming_plans", ["cleanup_after_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_farming_plans_cleanup_after", table_name="farming_plans")
    op.drop_index("ix_farming_plans_user_status", table_name="farming_plans")
    op.drop_table("farming_plans")
    op.drop_table("users")
