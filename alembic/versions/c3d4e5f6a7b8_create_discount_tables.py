"""create discount type, applied discount and discount audit tables

Revision ID: c3d4e5f6a7b8
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c3d4e5f6a7b8"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "discount_type",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("default_value", sa.Numeric(15, 2), nullable=False),
        sa.Column(
            "applies_to",
            sa.String(length=20),
            nullable=False,
            server_default=sa.text("'any'"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "requires_approval",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("max_discount_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("kind IN ('percentage', 'fixed_amount')", name="ck_discount_type_kind"),
        sa.CheckConstraint(
            "applies_to IN ('labor', 'parts', 'work_order', 'any')",
            name="ck_discount_type_applies_to",
        ),
        sa.CheckConstraint(
            "max_discount_amount IS NULL OR max_discount_amount >= 0",
            name="ck_discount_type_max_amount",
        ),
    )
    op.create_index("ix_discount_type_name", "discount_type", ["name"], unique=False)

    op.create_table(
        "applied_discount",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_kind", sa.String(length=20), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=False),
        sa.Column(
            "discount_type_id",
            sa.Integer(),
            sa.ForeignKey("discount_type.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("discount_name", sa.String(length=120), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("value", sa.Numeric(15, 2), nullable=False),
        sa.Column(
            "discount_amount",
            sa.Numeric(15, 2),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("max_discount_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("applies_to", sa.String(length=20), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "approval_status",
            sa.String(length=20),
            nullable=False,
            server_default=sa.text("'not_required'"),
        ),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejected_by", sa.String(length=255), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("last_changed_by", sa.String(length=255), nullable=False),
        sa.CheckConstraint(
            "owner_kind IN ('job_line', 'part', 'work_order')",
            name="ck_applied_discount_owner_kind",
        ),
        sa.CheckConstraint("kind IN ('percentage', 'fixed_amount')", name="ck_applied_discount_kind"),
        sa.CheckConstraint(
            "approval_status IN ('not_required', 'pending', 'approved', 'rejected')",
            name="ck_applied_discount_status",
        ),
        sa.CheckConstraint("discount_amount >= 0", name="ck_applied_discount_amount"),
        sa.CheckConstraint(
            "(approved_by IS NULL AND approved_at IS NULL) OR (approved_by IS NOT NULL AND approved_at IS NOT NULL)",
            name="ck_applied_discount_approval_pair",
        ),
    )
    op.create_index("ix_applied_discount_owner_kind", "applied_discount", ["owner_kind"], unique=False)
    op.create_index("ix_applied_discount_owner_id", "applied_discount", ["owner_id"], unique=False)
    op.create_index("ix_applied_discount_work_order_id", "applied_discount", ["work_order_id"], unique=False)
    op.create_index(
        "ix_applied_discount_approval_status",
        "applied_discount",
        ["approval_status"],
        unique=False,
    )
    op.create_index("ix_applied_discount_created_at", "applied_discount", ["created_at"], unique=False)

    op.create_table(
        "discount_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("discount_id", sa.Integer(), nullable=False),
        sa.Column("discount_table", sa.String(length=40), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=True),
        sa.Column("action_type", sa.String(length=20), nullable=False),
        sa.Column("old_values", sa.Text(), nullable=True),
        sa.Column("new_values", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=255), nullable=False),
        sa.Column(
            "performed_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "action_type IN ('created', 'modified', 'deleted', 'approved', 'rejected')",
            name="ck_discount_audit_log_action",
        ),
    )
    op.create_index("ix_discount_audit_log_discount_id", "discount_audit_log", ["discount_id"], unique=False)
    op.create_index(
        "ix_discount_audit_log_work_order_id",
        "discount_audit_log",
        ["work_order_id"],
        unique=False,
    )
    op.create_index("ix_discount_audit_log_action_type", "discount_audit_log", ["action_type"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_discount_audit_log_action_type", table_name="discount_audit_log")
    op.drop_index("ix_discount_audit_log_work_order_id", table_name="discount_audit_log")
    op.drop_index("ix_discount_audit_log_discount_id", table_name="discount_audit_log")
    op.drop_table("discount_audit_log")

    op.drop_index("ix_applied_discount_created_at", table_name="applied_discount")
    op.drop_index("ix_applied_discount_approval_status", table_name="applied_discount")
    op.drop_index("ix_applied_discount_work_order_id", table_name="applied_discount")
    op.drop_index("ix_applied_discount_owner_id", table_name="applied_discount")
    op.drop_index("ix_applied_discount_owner_kind", table_name="applied_discount")
    op.drop_table("applied_discount")

    op.drop_index("ix_discount_type_name", table_name="discount_type")
    op.drop_table("discount_type")
