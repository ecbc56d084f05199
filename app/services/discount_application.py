from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.flow_logging import flow_info
from app.core.money import HUNDRED, ZERO, percent_of, round_money, to_decimal
from app.models.discount import (
    ACTION_CREATED,
    ACTION_DELETED,
    ACTION_MODIFIED,
    CATEGORY_ANY,
    KIND_PERCENTAGE,
    OWNER_CATEGORY,
    OWNER_WORK_ORDER,
    STATUS_APPROVED,
    STATUS_NOT_REQUIRED,
    STATUS_PENDING,
    STATUS_REJECTED,
    TARGET_TOTAL,
    AppliedDiscount,
)
from app.schemas.discount import (
    ApplyDiscountRequest,
    ModifyDiscountRequest,
    normalize_owner_kind,
)
from app.services.discount_audit import DiscountAuditSink, discount_snapshot
from app.services.discount_catalog import DiscountCatalog
from app.services.pricing_errors import (
    ConsistencyFault,
    DiscountValidationError,
    InvalidStateError,
    NotFoundError,
)
from app.services.work_order_gateway import OwnerRecord, WorkOrderGateway

logger = logging.getLogger(__name__)


def validate_discount_value(kind: str, value: Decimal | None) -> Decimal:
    if value is None:
        raise DiscountValidationError(message="Discount value is required.")
    amount = to_decimal(value)
    if kind == KIND_PERCENTAGE:
        if amount < 0 or amount > HUNDRED:
            raise DiscountValidationError(
                message="Percentage discount must be between 0 and 100.",
                context={"value": str(amount)},
            )
    elif amount < 0:
        raise DiscountValidationError(
            message="Fixed discount amount cannot be negative.",
            context={"value": str(amount)},
        )
    return amount


def compute_discount_amount(
    kind: str,
    value: Decimal,
    base: Decimal,
    max_discount_amount: Decimal | None = None,
) -> Decimal:
    """
    Monetary effect of one discount on `base`.

    The result is clamped to `[0, base]`, capped at `max_discount_amount`
    when the catalog sets one, and rounded half-up to cents.
    """
    base_value = max(to_decimal(base), ZERO)
    if kind == KIND_PERCENTAGE:
        raw = percent_of(base_value, value)
    else:
        raw = to_decimal(value)
    raw = min(max(raw, ZERO), base_value)
    if max_discount_amount is not None:
        raw = min(raw, max(to_decimal(max_discount_amount), ZERO))
    return round_money(raw)


def _naive_utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.min
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def creation_order_key(discount: Any) -> tuple[datetime, int]:
    return (_naive_utc(getattr(discount, "created_at", None)), int(getattr(discount, "id", 0) or 0))


def load_work_order_discounts(db: Session, work_order_id: int) -> list[AppliedDiscount]:
    rows = (
        db.query(AppliedDiscount)
        .filter(AppliedDiscount.work_order_id == int(work_order_id))
        .all()
    )
    return sorted(rows, key=creation_order_key)


class DiscountWriter:
    """Shared plumbing for services that mutate discounts and audit them."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = DiscountAuditSink(db)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def _normalized_actor(actor: str | None) -> str:
        normalized = (actor or "").strip().lower()
        if not normalized:
            raise DiscountValidationError(message="Acting user is required.")
        return normalized

    def _get_discount(self, discount_id: int, *, for_update: bool = True) -> AppliedDiscount:
        query = self.db.query(AppliedDiscount).filter(AppliedDiscount.id == int(discount_id))
        if for_update:
            query = query.with_for_update()
        discount = query.first()
        if discount is None:
            raise NotFoundError(
                message=f"Discount {discount_id} was not found.",
                context={"discount_id": discount_id},
            )
        return discount

    def _commit(self, action: str, write: Callable[[], None]) -> None:
        """Run `write` and commit it as one transaction, or roll everything back."""
        try:
            write()
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("discount_commit_failed action=%s error=%s", action, exc)
            raise ConsistencyFault(context={"action": action}) from exc


class DiscountService(DiscountWriter):
    def __init__(
        self,
        db: Session,
        gateway: WorkOrderGateway,
        catalog: DiscountCatalog | None = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self._catalog = catalog

    @property
    def catalog(self) -> DiscountCatalog:
        if self._catalog is None:
            self._catalog = DiscountCatalog.load(self.db)
        return self._catalog

    def _load_editable_owner(self, owner_kind: str, owner_id: int) -> OwnerRecord:
        try:
            owner = self.gateway.load_owner(owner_kind, int(owner_id))
        except NotFoundError as exc:
            raise DiscountValidationError(
                message=f"{owner_kind} {owner_id} was not found.",
                context={"owner_kind": owner_kind, "owner_id": owner_id},
            ) from exc
        if not owner.is_editable:
            raise DiscountValidationError(
                message="Work order is no longer editable.",
                context={"work_order_id": owner.work_order_id},
            )
        return owner

    @staticmethod
    def _resolve_applies_to(owner_kind: str, applies_to: str | None) -> str | None:
        if owner_kind != OWNER_WORK_ORDER:
            if applies_to is not None:
                raise DiscountValidationError(
                    message="applies_to is only valid for work-order discounts.",
                )
            return None
        return applies_to or TARGET_TOTAL

    def list_for_work_order(self, work_order_id: int) -> list[AppliedDiscount]:
        return load_work_order_discounts(self.db, work_order_id)

    def apply_discount(
        self,
        owner_kind: str,
        owner_id: int,
        request: ApplyDiscountRequest,
        actor: str,
    ) -> AppliedDiscount:
        try:
            owner_kind = normalize_owner_kind(owner_kind)
        except ValueError as exc:
            raise DiscountValidationError(message=str(exc)) from exc
        actor = self._normalized_actor(actor)
        applies_to = self._resolve_applies_to(owner_kind, request.applies_to)

        max_discount_amount = None
        if request.discount_type_id is not None:
            entry = self.catalog.resolve(request.discount_type_id)
            if not entry.is_active:
                raise DiscountValidationError(
                    message=f"Discount type '{entry.name}' is inactive.",
                    context={"discount_type_id": entry.id},
                )
            if entry.applies_to not in {OWNER_CATEGORY[owner_kind], CATEGORY_ANY}:
                raise DiscountValidationError(
                    message=f"Discount type '{entry.name}' does not apply to {owner_kind}.",
                    context={"discount_type_id": entry.id, "applies_to": entry.applies_to},
                )
            if request.kind is not None and request.kind != entry.kind:
                raise DiscountValidationError(
                    message=f"Discount type '{entry.name}' is a {entry.kind} discount.",
                    context={"discount_type_id": entry.id, "kind": request.kind},
                )
            kind = entry.kind
            value = request.value if request.value is not None else entry.default_value
            name = request.discount_name or entry.name
            requires_approval = bool(entry.requires_approval or request.requires_approval)
            max_discount_amount = entry.max_discount_amount
        else:
            kind = request.kind
            value = request.value
            name = request.discount_name
            requires_approval = bool(
                request.requires_approval or settings.DISCOUNT_AD_HOC_REQUIRES_APPROVAL
            )

        value = validate_discount_value(kind, value)
        if requires_approval and not request.reason:
            raise DiscountValidationError(message="A reason is required for discounts that need approval.")

        owner = self._load_editable_owner(owner_kind, owner_id)
        amount = compute_discount_amount(kind, value, owner.base_for(applies_to), max_discount_amount)

        now = self._now()
        discount = AppliedDiscount(
            owner_kind=owner_kind,
            owner_id=int(owner_id),
            work_order_id=owner.work_order_id,
            discount_type_id=request.discount_type_id,
            discount_name=name,
            kind=kind,
            value=value,
            discount_amount=amount,
            max_discount_amount=max_discount_amount,
            applies_to=applies_to,
            reason=request.reason,
            approval_status=STATUS_PENDING if requires_approval else STATUS_NOT_REQUIRED,
            created_at=now,
            updated_at=now,
            created_by=actor,
            last_changed_by=actor,
        )

        def _write() -> None:
            self.db.add(discount)
            self.db.flush()
            self.audit.record(
                discount,
                action=ACTION_CREATED,
                actor=actor,
                performed_at=now,
                new_values=discount_snapshot(discount),
                reason=request.reason,
            )

        self._commit(ACTION_CREATED, _write)
        flow_info(
            logger,
            "discount_applied id=%s owner=%s:%s work_order_id=%s amount=%s status=%s actor=%s",
            discount.id,
            owner_kind,
            owner_id,
            discount.work_order_id,
            amount,
            discount.approval_status,
            actor,
            category="discounts",
        )
        return discount

    def modify_discount(
        self,
        discount_id: int,
        request: ModifyDiscountRequest,
        actor: str,
    ) -> AppliedDiscount:
        actor = self._normalized_actor(actor)
        discount = self._get_discount(discount_id)
        if discount.approval_status == STATUS_REJECTED:
            raise InvalidStateError(
                message="Rejected discounts cannot be modified.",
                context={"discount_id": discount.id, "approval_status": discount.approval_status},
            )

        kind = request.kind or discount.kind
        value = validate_discount_value(kind, request.value if request.value is not None else discount.value)
        applies_to = discount.applies_to
        if request.applies_to is not None:
            applies_to = self._resolve_applies_to(discount.owner_kind, request.applies_to)
        reason = request.reason or discount.reason
        if discount.approval_status in {STATUS_PENDING, STATUS_APPROVED} and not reason:
            raise DiscountValidationError(message="A reason is required for discounts that need approval.")

        owner = self._load_editable_owner(discount.owner_kind, discount.owner_id)
        max_discount_amount = discount.max_discount_amount
        if max_discount_amount is None:
            entry = self.catalog.get(discount.discount_type_id)
            max_discount_amount = entry.max_discount_amount if entry is not None else None
        amount = compute_discount_amount(kind, value, owner.base_for(applies_to), max_discount_amount)

        old_values = discount_snapshot(discount)
        now = self._now()

        def _write() -> None:
            discount.kind = kind
            discount.value = value
            discount.discount_amount = amount
            discount.applies_to = applies_to
            discount.reason = reason
            if request.discount_name:
                discount.discount_name = request.discount_name
            discount.updated_at = now
            discount.last_changed_by = actor
            self.db.flush()
            self.audit.record(
                discount,
                action=ACTION_MODIFIED,
                actor=actor,
                performed_at=now,
                old_values=old_values,
                new_values=discount_snapshot(discount),
                reason=request.reason,
            )

        self._commit(ACTION_MODIFIED, _write)
        flow_info(
            logger,
            "discount_modified id=%s amount=%s status=%s actor=%s",
            discount.id,
            amount,
            discount.approval_status,
            actor,
            category="discounts",
        )
        return discount

    def remove_discount(
        self,
        discount_id: int,
        actor: str,
        reason: str | None = None,
    ) -> None:
        actor = self._normalized_actor(actor)
        discount = self._get_discount(discount_id)
        self._load_editable_owner(discount.owner_kind, discount.owner_id)

        old_values = discount_snapshot(discount)
        now = self._now()
        removed_id = discount.id

        def _write() -> None:
            self.audit.record(
                discount,
                action=ACTION_DELETED,
                actor=actor,
                performed_at=now,
                old_values=old_values,
                reason=reason,
            )
            self.db.delete(discount)
            self.db.flush()

        self._commit(ACTION_DELETED, _write)
        flow_info(
            logger,
            "discount_removed id=%s actor=%s",
            removed_id,
            actor,
            category="discounts",
        )
