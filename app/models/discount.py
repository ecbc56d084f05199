from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import ActorStampMixin

KIND_PERCENTAGE = "percentage"
KIND_FIXED_AMOUNT = "fixed_amount"
DISCOUNT_KINDS = frozenset({KIND_PERCENTAGE, KIND_FIXED_AMOUNT})

# Catalog applicability.
CATEGORY_LABOR = "labor"
CATEGORY_PARTS = "parts"
CATEGORY_WORK_ORDER = "work_order"
CATEGORY_ANY = "any"
CATALOG_CATEGORIES = frozenset({CATEGORY_LABOR, CATEGORY_PARTS, CATEGORY_WORK_ORDER, CATEGORY_ANY})

OWNER_JOB_LINE = "job_line"
OWNER_PART = "part"
OWNER_WORK_ORDER = "work_order"
OWNER_KINDS = frozenset({OWNER_JOB_LINE, OWNER_PART, OWNER_WORK_ORDER})

# Which catalog category an owner kind draws from.
OWNER_CATEGORY = {
    OWNER_JOB_LINE: CATEGORY_LABOR,
    OWNER_PART: CATEGORY_PARTS,
    OWNER_WORK_ORDER: CATEGORY_WORK_ORDER,
}

# Audit `discount_table` values, one per discount shape.
OWNER_AUDIT_TABLE = {
    OWNER_JOB_LINE: "job_line_discounts",
    OWNER_PART: "part_discounts",
    OWNER_WORK_ORDER: "work_order_discounts",
}

# Work-order discount targets.
TARGET_LABOR = "labor"
TARGET_PARTS = "parts"
TARGET_TOTAL = "total"
WORK_ORDER_TARGETS = frozenset({TARGET_LABOR, TARGET_PARTS, TARGET_TOTAL})

STATUS_NOT_REQUIRED = "not_required"
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
APPROVAL_STATUSES = frozenset({STATUS_NOT_REQUIRED, STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED})
ACTIVE_STATUSES = frozenset({STATUS_NOT_REQUIRED, STATUS_APPROVED})

ACTION_CREATED = "created"
ACTION_MODIFIED = "modified"
ACTION_DELETED = "deleted"
ACTION_APPROVED = "approved"
ACTION_REJECTED = "rejected"
AUDIT_ACTIONS = frozenset({ACTION_CREATED, ACTION_MODIFIED, ACTION_DELETED, ACTION_APPROVED, ACTION_REJECTED})


class DiscountType(Base):
    """
    Catalog entry for a reusable discount.
    Rows are treated as immutable once an applied discount references them.
    """

    __table_args__ = (
        CheckConstraint("kind IN ('percentage', 'fixed_amount')", name="ck_discount_type_kind"),
        CheckConstraint(
            "applies_to IN ('labor', 'parts', 'work_order', 'any')",
            name="ck_discount_type_applies_to",
        ),
        CheckConstraint(
            "max_discount_amount IS NULL OR max_discount_amount >= 0",
            name="ck_discount_type_max_amount",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    default_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    applies_to: Mapped[str] = mapped_column(String(20), nullable=False, default=CATEGORY_ANY)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    created_at: Mapped[object] = mapped_column(DateTime, nullable=False, server_default=func.now())


class AppliedDiscount(ActorStampMixin, Base):
    """
    A discount attached to one job line, one part or one whole work order.
    `owner_kind` tags the shape; `applies_to` is only meaningful for
    work-order discounts.
    """

    __table_args__ = (
        CheckConstraint("owner_kind IN ('job_line', 'part', 'work_order')", name="ck_applied_discount_owner_kind"),
        CheckConstraint("kind IN ('percentage', 'fixed_amount')", name="ck_applied_discount_kind"),
        CheckConstraint(
            "approval_status IN ('not_required', 'pending', 'approved', 'rejected')",
            name="ck_applied_discount_status",
        ),
        CheckConstraint("discount_amount >= 0", name="ck_applied_discount_amount"),
        CheckConstraint(
            "(approved_by IS NULL AND approved_at IS NULL) OR (approved_by IS NOT NULL AND approved_at IS NOT NULL)",
            name="ck_applied_discount_approval_pair",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    work_order_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    discount_type_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("discount_type.id", ondelete="SET NULL"),
        nullable=True,
    )
    discount_name: Mapped[str] = mapped_column(String(120), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    # Catalog cap as of creation; not cleared when the type is deleted.
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    applies_to: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_NOT_REQUIRED, index=True
    )
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[object | None] = mapped_column(DateTime, nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rejected_at: Mapped[object | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def discount_table(self) -> str:
        return OWNER_AUDIT_TABLE[self.owner_kind]

    @property
    def is_active(self) -> bool:
        return self.approval_status in ACTIVE_STATUSES


class DiscountAuditLog(Base):
    """
    Immutable audit trail for discount lifecycle actions.
    `discount_id` has no foreign key; rows outlive the discount they describe.
    """

    __table_args__ = (
        CheckConstraint(
            "action_type IN ('created', 'modified', 'deleted', 'approved', 'rejected')",
            name="ck_discount_audit_log_action",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discount_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    discount_table: Mapped[str] = mapped_column(String(40), nullable=False)
    work_order_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    old_values: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_values: Mapped[str | None] = mapped_column(Text, nullable=True)
    performed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_at: Mapped[object] = mapped_column(DateTime, nullable=False, server_default=func.now())
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class AuditLogImmutableError(RuntimeError):
    pass


@event.listens_for(DiscountAuditLog, "before_update")
def _refuse_audit_update(_mapper, _connection, target: DiscountAuditLog) -> None:
    raise AuditLogImmutableError(f"discount_audit_log row {target.id} is append-only.")


@event.listens_for(DiscountAuditLog, "before_delete")
def _refuse_audit_delete(_mapper, _connection, target: DiscountAuditLog) -> None:
    raise AuditLogImmutableError(f"discount_audit_log row {target.id} is append-only.")
