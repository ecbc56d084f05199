"""
Labor/parts tax calculation and tax-setting validation.

Both entry points are pure: they read a `TaxConfiguration` snapshot and
never touch the database.
"""

from __future__ import annotations

from decimal import Decimal

from app.core.config import settings
from app.core.money import HUNDRED, ZERO, apportion, percent_of, round_money, to_decimal
from app.schemas.pricing import TaxBreakdown, TaxConfiguration, TaxValidationResult

TAX_METHOD_ADDITIVE = "additive"
TAX_METHOD_COMPOUND = "compound"


def _fleet_split(labor_base: Decimal, parts_base: Decimal, fleet_amount: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    combined = labor_base + parts_base
    fleet = round_money(min(max(to_decimal(fleet_amount), ZERO), combined))
    labor_share = apportion(fleet, labor_base, combined)
    return fleet, labor_share, round_money(fleet - labor_share)


def compute_tax(
    labor_base: Decimal,
    parts_base: Decimal,
    config: TaxConfiguration,
    is_exempt: bool | None = None,
) -> TaxBreakdown:
    labor_base = round_money(max(to_decimal(labor_base), ZERO))
    parts_base = round_money(max(to_decimal(parts_base), ZERO))

    fleet, labor_fleet, parts_fleet = _fleet_split(labor_base, parts_base, config.fleet_discount_amount)
    labor_taxable = round_money(labor_base - labor_fleet)
    parts_taxable = round_money(parts_base - parts_fleet)

    if is_exempt is None:
        is_exempt = config.customer_tax_exempt
    if is_exempt:
        return TaxBreakdown(
            labor_taxable_base=labor_taxable,
            parts_taxable_base=parts_taxable,
            fleet_discount=fleet,
            labor_tax=ZERO,
            parts_tax=ZERO,
            total_tax=ZERO,
        )

    gated_labor = labor_taxable if config.apply_tax_to_labor else ZERO
    gated_parts = parts_taxable if config.apply_tax_to_parts else ZERO
    labor_rate = to_decimal(config.labor_tax_rate)
    parts_rate = to_decimal(config.parts_tax_rate)

    if config.tax_calculation_method == TAX_METHOD_COMPOUND:
        combined = gated_labor + gated_parts
        if combined > 0:
            blended_rate = (gated_labor * labor_rate + gated_parts * parts_rate) / combined
            total_tax = round_money(percent_of(combined, blended_rate))
        else:
            total_tax = ZERO
        labor_tax = apportion(total_tax, gated_labor, combined)
        parts_tax = round_money(total_tax - labor_tax)
    else:
        labor_tax = round_money(percent_of(gated_labor, labor_rate))
        parts_tax = round_money(percent_of(gated_parts, parts_rate))
        total_tax = round_money(labor_tax + parts_tax)

    return TaxBreakdown(
        labor_taxable_base=labor_taxable,
        parts_taxable_base=parts_taxable,
        fleet_discount=fleet,
        labor_tax=labor_tax,
        parts_tax=parts_tax,
        total_tax=total_tax,
    )


def validate_tax_settings(config: TaxConfiguration) -> TaxValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    threshold = to_decimal(settings.TAX_RATE_WARNING_THRESHOLD)

    for label, raw_rate in (
        ("Labor", config.labor_tax_rate),
        ("Parts", config.parts_tax_rate),
    ):
        rate = to_decimal(raw_rate)
        if rate < 0 or rate > HUNDRED:
            errors.append(f"{label} tax rate must be between 0 and 100.")
        elif rate > threshold:
            warnings.append(f"{label} tax rate of {rate}% is unusually high.")

    if not (config.tax_description or "").strip():
        errors.append("Tax description is required.")

    if to_decimal(config.fleet_discount_amount) < 0:
        errors.append("Fleet discount amount cannot be negative.")

    if not config.apply_tax_to_labor and not config.apply_tax_to_parts:
        warnings.append("Tax is disabled for both labor and parts.")

    if (
        config.tax_calculation_method == TAX_METHOD_COMPOUND
        and to_decimal(config.labor_tax_rate) != to_decimal(config.parts_tax_rate)
    ):
        warnings.append("Compound tax with different labor and parts rates uses a blended rate.")

    return TaxValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
