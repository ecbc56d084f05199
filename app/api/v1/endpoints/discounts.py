from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_request_identity
from app.api.deps.work_order_gateway import get_work_order_gateway
from app.db.session import get_db
from app.models.discount import AppliedDiscount
from app.schemas.discount import (
    AppliedDiscountRead,
    ApplyDiscountRequest,
    DiscountAuditHistoryResponse,
    DiscountAuditLogRead,
    DiscountListResponse,
    DiscountRemovedResponse,
    DiscountTypeRead,
    ModifyDiscountRequest,
    RejectDiscountRequest,
)
from app.schemas.request_identity import RequestIdentity
from app.services.approval_gate import ApprovalGate
from app.services.discount_application import DiscountService, load_work_order_discounts
from app.services.discount_audit import DiscountAuditSink
from app.services.discount_catalog import DiscountCatalog
from app.services.pricing_errors import PricingFailure
from app.services.work_order_gateway import WorkOrderGateway

router = APIRouter()


def _raise_pricing_failure(exc: PricingFailure) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


@router.get("/discount-types", response_model=list[DiscountTypeRead])
def list_discount_types(
    category: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return DiscountCatalog.load(db).available_for(category)


@router.get("/work-orders/{work_order_id}/discounts", response_model=DiscountListResponse)
def list_work_order_discounts(work_order_id: int, db: Session = Depends(get_db)):
    rows = load_work_order_discounts(db, work_order_id)
    return DiscountListResponse(
        work_order_id=work_order_id,
        discounts=[AppliedDiscountRead.model_validate(row) for row in rows],
    )


@router.get("/discounts/{discount_id}/audit-log", response_model=DiscountAuditHistoryResponse)
def read_discount_audit_log(
    discount_id: int,
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    entries = DiscountAuditSink(db).history(discount_id, limit=limit)
    if not entries and db.get(AppliedDiscount, discount_id) is None:
        raise HTTPException(status_code=404, detail="Discount audit history not found.")
    return DiscountAuditHistoryResponse(
        discount_id=discount_id,
        entries=[DiscountAuditLogRead.model_validate(entry) for entry in entries],
    )


@router.post("/discounts/{discount_id}/approve", response_model=AppliedDiscountRead)
def approve_discount(
    discount_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        discount = ApprovalGate(db).approve_discount(discount_id, identity.actor)
    except PricingFailure as exc:
        db.rollback()
        _raise_pricing_failure(exc)
    return AppliedDiscountRead.model_validate(discount)


@router.post("/discounts/{discount_id}/reject", response_model=AppliedDiscountRead)
def reject_discount(
    discount_id: int,
    payload: RejectDiscountRequest,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        discount = ApprovalGate(db).reject_discount(discount_id, identity.actor, payload.reason)
    except PricingFailure as exc:
        db.rollback()
        _raise_pricing_failure(exc)
    return AppliedDiscountRead.model_validate(discount)


# Declared after the /approve and /reject routes, which share its shape.
@router.post("/discounts/{owner_kind}/{owner_id}", response_model=AppliedDiscountRead, status_code=201)
def apply_discount(
    owner_kind: str,
    owner_id: int,
    payload: ApplyDiscountRequest,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
    gateway: WorkOrderGateway = Depends(get_work_order_gateway),
):
    service = DiscountService(db, gateway)
    try:
        discount = service.apply_discount(owner_kind, owner_id, payload, identity.actor)
    except PricingFailure as exc:
        db.rollback()
        _raise_pricing_failure(exc)
    return AppliedDiscountRead.model_validate(discount)


@router.patch("/discounts/{discount_id}", response_model=AppliedDiscountRead)
def modify_discount(
    discount_id: int,
    payload: ModifyDiscountRequest,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
    gateway: WorkOrderGateway = Depends(get_work_order_gateway),
):
    service = DiscountService(db, gateway)
    try:
        discount = service.modify_discount(discount_id, payload, identity.actor)
    except PricingFailure as exc:
        db.rollback()
        _raise_pricing_failure(exc)
    return AppliedDiscountRead.model_validate(discount)


@router.delete("/discounts/{discount_id}", response_model=DiscountRemovedResponse)
def remove_discount(
    discount_id: int,
    reason: str | None = Query(default=None, max_length=1000),
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
    gateway: WorkOrderGateway = Depends(get_work_order_gateway),
):
    service = DiscountService(db, gateway)
    try:
        service.remove_discount(discount_id, identity.actor, reason=reason)
    except PricingFailure as exc:
        db.rollback()
        _raise_pricing_failure(exc)
    return DiscountRemovedResponse(discount_id=discount_id)
