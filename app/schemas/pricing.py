from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from .base import SnapshotSchema
from .discount import AppliedDiscountRead

_TAX_METHODS = {"additive", "compound"}


class JobLineSnapshot(SnapshotSchema):
    id: int
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=15, decimal_places=2)
    description: str | None = None


class PartSnapshot(SnapshotSchema):
    id: int
    total_price: Decimal = Field(default=Decimal("0.00"), max_digits=15, decimal_places=2)
    description: str | None = None


class WorkOrderSnapshot(SnapshotSchema):
    work_order_id: int
    job_lines: tuple[JobLineSnapshot, ...] = ()
    parts: tuple[PartSnapshot, ...] = ()
    discounts: tuple[AppliedDiscountRead, ...] = ()


class TaxConfiguration(SnapshotSchema):
    """
    Rates are percentages. Range checks live in `validate_tax_settings`
    so an out-of-range configuration can still be described to the user.
    """

    labor_tax_rate: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=4)
    parts_tax_rate: Decimal = Field(default=Decimal("0"), max_digits=9, decimal_places=4)
    apply_tax_to_labor: bool = True
    apply_tax_to_parts: bool = True
    tax_calculation_method: str = "additive"
    tax_description: str | None = None
    customer_tax_exempt: bool = False
    fleet_discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=15, decimal_places=2)

    @field_validator("tax_calculation_method")
    @classmethod
    def validate_method(cls, value: str) -> str:
        normalized = (value or "additive").strip().lower()
        if normalized not in _TAX_METHODS:
            raise ValueError("tax_calculation_method must be additive or compound.")
        return normalized


class TaxBreakdown(SnapshotSchema):
    labor_taxable_base: Decimal
    parts_taxable_base: Decimal
    fleet_discount: Decimal
    labor_tax: Decimal
    parts_tax: Decimal
    total_tax: Decimal


class DiscountLine(SnapshotSchema):
    discount_id: int
    owner_kind: str
    owner_id: int
    discount_name: str
    applies_to: str | None = None
    amount: Decimal


class DiscountCalculationResult(SnapshotSchema):
    labor_subtotal: Decimal
    labor_discounts: Decimal
    labor_total: Decimal
    parts_subtotal: Decimal
    parts_discounts: Decimal
    parts_total: Decimal
    work_order_discounts: Decimal
    subtotal_before_wo_discounts: Decimal
    total_discounts: Decimal
    fleet_discount: Decimal
    labor_tax: Decimal
    parts_tax: Decimal
    total_tax: Decimal
    final_total: Decimal
    discount_lines: tuple[DiscountLine, ...] = ()


class TaxValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PricingRequest(BaseModel):
    job_lines: list[JobLineSnapshot] = Field(default_factory=list)
    parts: list[PartSnapshot] = Field(default_factory=list)
    tax_config: TaxConfiguration = Field(default_factory=TaxConfiguration)
    customer_tax_exempt: bool | None = None


class PricingResponse(BaseModel):
    work_order_id: int
    result: DiscountCalculationResult
    tax_warnings: list[str] = Field(default_factory=list)
