from __future__ import annotations

import logging

from app.core.flow_logging import flow_info
from app.models.discount import (
    ACTION_APPROVED,
    ACTION_REJECTED,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    AppliedDiscount,
)
from app.services.discount_application import DiscountWriter
from app.services.discount_audit import discount_snapshot
from app.services.pricing_errors import DiscountValidationError, InvalidStateError

logger = logging.getLogger(__name__)


class ApprovalGate(DiscountWriter):
    """
    pending -> approved | rejected, each exactly once.

    `not_required` discounts never enter the gate. The status change and its
    audit row are committed together.
    """

    def _require_pending(self, discount: AppliedDiscount, action: str) -> None:
        if discount.approval_status != STATUS_PENDING:
            raise InvalidStateError(
                message=f"Only pending discounts can be {action}.",
                context={"discount_id": discount.id, "approval_status": discount.approval_status},
            )

    def approve_discount(self, discount_id: int, actor: str) -> AppliedDiscount:
        actor = self._normalized_actor(actor)
        discount = self._get_discount(discount_id)
        self._require_pending(discount, ACTION_APPROVED)

        old_values = discount_snapshot(discount)
        now = self._now()

        def _write() -> None:
            discount.approval_status = STATUS_APPROVED
            discount.approved_by = actor
            discount.approved_at = now
            discount.updated_at = now
            discount.last_changed_by = actor
            self.db.flush()
            self.audit.record(
                discount,
                action=ACTION_APPROVED,
                actor=actor,
                performed_at=now,
                old_values=old_values,
                new_values=discount_snapshot(discount),
            )

        self._commit(ACTION_APPROVED, _write)
        flow_info(
            logger,
            "discount_approved id=%s work_order_id=%s actor=%s",
            discount.id,
            discount.work_order_id,
            actor,
            category="discounts",
        )
        return discount

    def reject_discount(self, discount_id: int, actor: str, reason: str) -> AppliedDiscount:
        actor = self._normalized_actor(actor)
        reason = (reason or "").strip()
        if not reason:
            raise DiscountValidationError(message="A rejection reason is required.")
        discount = self._get_discount(discount_id)
        self._require_pending(discount, ACTION_REJECTED)

        old_values = discount_snapshot(discount)
        now = self._now()

        def _write() -> None:
            discount.approval_status = STATUS_REJECTED
            discount.rejected_by = actor
            discount.rejected_at = now
            discount.rejection_reason = reason
            discount.updated_at = now
            discount.last_changed_by = actor
            self.db.flush()
            self.audit.record(
                discount,
                action=ACTION_REJECTED,
                actor=actor,
                performed_at=now,
                old_values=old_values,
                new_values=discount_snapshot(discount),
                reason=reason,
            )

        self._commit(ACTION_REJECTED, _write)
        flow_info(
            logger,
            "discount_rejected id=%s work_order_id=%s actor=%s",
            discount.id,
            discount.work_order_id,
            actor,
            category="discounts",
        )
        return discount
