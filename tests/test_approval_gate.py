from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models.discount import AppliedDiscount, DiscountAuditLog
from app.schemas.discount import ApplyDiscountRequest
from app.services.approval_gate import ApprovalGate
from app.services.discount_application import DiscountService
from app.services.pricing_errors import (
    ConsistencyFault,
    DiscountValidationError,
    InvalidStateError,
    NotFoundError,
)


def _pending_discount(db_session, gateway) -> AppliedDiscount:
    return DiscountService(db_session, gateway).apply_discount(
        "job_line",
        10,
        ApplyDiscountRequest(
            discount_name="Goodwill",
            kind="percentage",
            value=Decimal("20"),
            requires_approval=True,
            reason="Repeat visit for same fault",
        ),
        "tech@example.com",
    )


def _actions(db_session, discount_id):
    return [
        row.action_type
        for row in db_session.query(DiscountAuditLog)
        .filter(DiscountAuditLog.discount_id == discount_id)
        .order_by(DiscountAuditLog.id.asc())
        .all()
    ]


def test_approve_sets_approver_pair_and_audits(db_session, gateway):
    discount = _pending_discount(db_session, gateway)

    approved = ApprovalGate(db_session).approve_discount(discount.id, "Manager@Example.com")

    assert approved.approval_status == "approved"
    assert approved.approved_by == "manager@example.com"
    assert approved.approved_at is not None
    assert approved.is_active
    assert _actions(db_session, discount.id) == ["created", "approved"]


def test_each_transition_happens_once(db_session, gateway):
    gate = ApprovalGate(db_session)
    discount = _pending_discount(db_session, gateway)
    gate.approve_discount(discount.id, "manager@example.com")

    with pytest.raises(InvalidStateError):
        gate.approve_discount(discount.id, "manager@example.com")
    with pytest.raises(InvalidStateError):
        gate.reject_discount(discount.id, "manager@example.com", "Changed my mind")

    assert _actions(db_session, discount.id) == ["created", "approved"]


def test_reject_keeps_discount_but_excludes_it(db_session, gateway):
    gate = ApprovalGate(db_session)
    discount = _pending_discount(db_session, gateway)

    rejected = gate.reject_discount(discount.id, "manager@example.com", "  Outside policy  ")

    assert rejected.approval_status == "rejected"
    assert rejected.rejection_reason == "Outside policy"
    assert rejected.approved_by is None and rejected.approved_at is None
    assert not rejected.is_active
    assert db_session.get(AppliedDiscount, discount.id) is not None
    with pytest.raises(InvalidStateError):
        gate.approve_discount(discount.id, "manager@example.com")


def test_reject_requires_reason(db_session, gateway):
    discount = _pending_discount(db_session, gateway)

    with pytest.raises(DiscountValidationError):
        ApprovalGate(db_session).reject_discount(discount.id, "manager@example.com", "   ")
    assert _actions(db_session, discount.id) == ["created"]


def test_discounts_without_approval_never_enter_the_gate(db_session, gateway):
    discount = DiscountService(db_session, gateway).apply_discount(
        "part",
        20,
        ApplyDiscountRequest(discount_name="Promo", kind="fixed_amount", value=Decimal("5")),
        "tech@example.com",
    )

    with pytest.raises(InvalidStateError):
        ApprovalGate(db_session).approve_discount(discount.id, "manager@example.com")
    with pytest.raises(NotFoundError):
        ApprovalGate(db_session).approve_discount(9999, "manager@example.com")


def test_failed_commit_rolls_back_status_and_audit(db_session, gateway, monkeypatch):
    discount = _pending_discount(db_session, gateway)
    discount_id = discount.id

    def _broken_commit():
        raise SQLAlchemyError("database went away")

    monkeypatch.setattr(db_session, "commit", _broken_commit)
    with pytest.raises(ConsistencyFault):
        ApprovalGate(db_session).approve_discount(discount_id, "manager@example.com")
    monkeypatch.undo()

    reloaded = db_session.get(AppliedDiscount, discount_id)
    assert reloaded.approval_status == "pending"
    assert reloaded.approved_by is None
    assert _actions(db_session, discount_id) == ["created"]
