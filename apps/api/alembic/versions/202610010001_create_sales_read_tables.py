"""create synced salesforce and gong read tables

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "sf_account",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=64), nullable=True),
        sa.Column("billing_city", sa.Text(), nullable=True),
        sa.Column("billing_state", sa.Text(), nullable=True),
        sa.Column("billing_country", sa.Text(), nullable=True),
        sa.Column("number_of_employees", sa.Integer(), nullable=True),
        sa.Column("annual_revenue", sa.Numeric(18, 2), nullable=True),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sf_account_name", "sf_account", ["name"], unique=False)

    op.create_table(
        "sf_opportunity",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("stage_name", sa.String(length=128), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("close_date", sa.Date(), nullable=True),
        sa.Column("probability", sa.Integer(), nullable=True),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_won", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("assigned_se_user_id", sa.String(length=64), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["sf_account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sf_opportunity_account_id", "sf_opportunity", ["account_id"], unique=False)
    op.create_index(
        "ix_sf_opportunity_assigned_se_user_id",
        "sf_opportunity",
        ["assigned_se_user_id"],
        unique=False,
    )

    op.create_table(
        "sf_contact",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("department", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["account_id"], ["sf_account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sf_contact_account_id", "sf_contact", ["account_id"], unique=False)

    op.create_table(
        "sf_activity",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("opportunity_id", sa.String(length=64), nullable=True),
        sa.Column("activity_type", sa.String(length=32), nullable=True),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("activity_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["account_id"], ["sf_account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sf_activity_account_id", "sf_activity", ["account_id"], unique=False)

    op.create_table(
        "gong_call",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=True),
        sa.Column("opportunity_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("started", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("media", sa.String(length=16), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("participants", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_gong_call_account_id", "gong_call", ["account_id"], unique=False)
    op.create_index("ix_gong_call_opportunity_id", "gong_call", ["opportunity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_gong_call_opportunity_id", table_name="gong_call")
    op.drop_index("ix_gong_call_account_id", table_name="gong_call")
    op.drop_table("gong_call")

    op.drop_index("ix_sf_activity_account_id", table_name="sf_activity")
    op.drop_table("sf_activity")

    op.drop_index("ix_sf_contact_account_id", table_name="sf_contact")
    op.drop_table("sf_contact")

    op.drop_index("ix_sf_opportunity_assigned_se_user_id", table_name="sf_opportunity")
    op.drop_index("ix_sf_opportunity_account_id", table_name="sf_opportunity")
    op.drop_table("sf_opportunity")

    op.drop_index("ix_sf_account_name", table_name="sf_account")
    op.drop_table("sf_account")
