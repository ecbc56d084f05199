from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.discount import AppliedDiscountRead
from app.schemas.pricing import (
    PricingRequest,
    PricingResponse,
    TaxConfiguration,
    TaxValidationResult,
    WorkOrderSnapshot,
)
from app.services.discount_application import load_work_order_discounts
from app.services.discount_catalog import DiscountCatalog
from app.services.pricing_aggregator import calculate_pricing
from app.services.tax_engine import validate_tax_settings

router = APIRouter()


@router.post("/tax-settings/validate", response_model=TaxValidationResult)
def validate_tax_configuration(payload: TaxConfiguration):
    return validate_tax_settings(payload)


@router.post("/work-orders/{work_order_id}/pricing", response_model=PricingResponse)
def price_work_order(
    work_order_id: int,
    payload: PricingRequest,
    db: Session = Depends(get_db),
):
    validation = validate_tax_settings(payload.tax_config)
    if not validation.is_valid:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_TAX_SETTINGS",
                "message": "Tax configuration is invalid.",
                "errors": validation.errors,
            },
        )

    discounts = load_work_order_discounts(db, work_order_id)
    snapshot = WorkOrderSnapshot(
        work_order_id=work_order_id,
        job_lines=tuple(payload.job_lines),
        parts=tuple(payload.parts),
        discounts=tuple(AppliedDiscountRead.model_validate(row) for row in discounts),
    )
    result = calculate_pricing(
        snapshot,
        payload.tax_config,
        payload.customer_tax_exempt,
        DiscountCatalog.load(db),
    )
    return PricingResponse(
        work_order_id=work_order_id,
        result=result,
        tax_warnings=validation.warnings,
    )
