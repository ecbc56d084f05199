from __future__ import annotations

import logging
from typing import Iterable

from app.core.flow_logging import flow_info
from app.core.money import Money, apportion
from app.models.discount import (
    OWNER_JOB_LINE,
    OWNER_PART,
    OWNER_WORK_ORDER,
    TARGET_LABOR,
    TARGET_PARTS,
)
from app.schemas.discount import AppliedDiscountRead
from app.schemas.pricing import (
    DiscountCalculationResult,
    DiscountLine,
    TaxConfiguration,
    WorkOrderSnapshot,
)
from app.services.discount_application import compute_discount_amount, creation_order_key
from app.services.discount_catalog import DiscountCatalog
from app.services.tax_engine import compute_tax

logger = logging.getLogger(__name__)


class _Run:
    """Mutable working state for one calculation."""

    def __init__(self, catalog: DiscountCatalog):
        self.catalog = catalog
        self.lines: list[DiscountLine] = []

    def take(self, discount: AppliedDiscountRead, base: Money) -> Money:
        cap = discount.max_discount_amount
        if cap is None:
            entry = self.catalog.get(discount.discount_type_id)
            cap = entry.max_discount_amount if entry is not None else None
        amount = Money.of(compute_discount_amount(discount.kind, discount.value, base.amount, cap))
        self.lines.append(
            DiscountLine(
                discount_id=discount.id,
                owner_kind=discount.owner_kind,
                owner_id=discount.owner_id,
                discount_name=discount.discount_name,
                applies_to=discount.applies_to,
                amount=amount.amount,
            )
        )
        return amount


def _line_discounts(
    run: _Run,
    remaining: dict[int, Money],
    discounts: Iterable[AppliedDiscountRead],
) -> Money:
    total = Money.zero()
    for discount in discounts:
        if discount.owner_id not in remaining:
            continue
        amount = run.take(discount, remaining[discount.owner_id])
        remaining[discount.owner_id] = (remaining[discount.owner_id] - amount).floor_zero()
        total = total + amount
    return total


def calculate_pricing(
    snapshot: WorkOrderSnapshot,
    tax_config: TaxConfiguration,
    customer_exempt: bool | None = None,
    catalog: DiscountCatalog | None = None,
) -> DiscountCalculationResult:
    """
    Deterministic price roll-up for one work order.

    Only active discounts (not_required or approved) are considered, in
    creation order. Each discount is recomputed against what is left of
    its base at that point. `customer_exempt=None` defers to
    `tax_config.customer_tax_exempt`; an explicit value overrides it.
    """
    run = _Run(catalog or DiscountCatalog())
    active = sorted((d for d in snapshot.discounts if d.is_active), key=creation_order_key)

    remaining_lines = {line.id: Money.of(line.total_amount).floor_zero() for line in snapshot.job_lines}
    remaining_parts = {part.id: Money.of(part.total_price).floor_zero() for part in snapshot.parts}
    labor_subtotal = Money.sum(remaining_lines.values())
    parts_subtotal = Money.sum(remaining_parts.values())

    labor_discounts = _line_discounts(
        run, remaining_lines, (d for d in active if d.owner_kind == OWNER_JOB_LINE)
    )
    labor_total = (labor_subtotal - labor_discounts).floor_zero()

    parts_discounts = _line_discounts(
        run, remaining_parts, (d for d in active if d.owner_kind == OWNER_PART)
    )
    parts_total = (parts_subtotal - parts_discounts).floor_zero()

    subtotal_before_wo = labor_total + parts_total

    labor_left = labor_total
    parts_left = parts_total
    work_order_discounts = Money.zero()
    for discount in active:
        if discount.owner_kind != OWNER_WORK_ORDER or discount.owner_id != snapshot.work_order_id:
            continue
        if discount.applies_to == TARGET_LABOR:
            amount = run.take(discount, labor_left)
            labor_left = (labor_left - amount).floor_zero()
        elif discount.applies_to == TARGET_PARTS:
            amount = run.take(discount, parts_left)
            parts_left = (parts_left - amount).floor_zero()
        else:
            combined = labor_left + parts_left
            amount = run.take(discount, combined)
            labor_share = Money.of(apportion(amount.amount, labor_left.amount, combined.amount))
            labor_left = (labor_left - labor_share).floor_zero()
            parts_left = (parts_left - (amount - labor_share)).floor_zero()
        work_order_discounts = work_order_discounts + amount

    tax = compute_tax(labor_total.amount, parts_total.amount, tax_config, customer_exempt)

    total_discounts = labor_discounts + parts_discounts + work_order_discounts
    final_total = (
        subtotal_before_wo - work_order_discounts - Money.of(tax.fleet_discount) + Money.of(tax.total_tax)
    ).floor_zero()

    flow_info(
        logger,
        "pricing_calculated work_order_id=%s subtotal=%s discounts=%s tax=%s final_total=%s active_discounts=%s",
        snapshot.work_order_id,
        subtotal_before_wo,
        total_discounts,
        tax.total_tax,
        final_total,
        len(run.lines),
        category="pricing",
    )

    return DiscountCalculationResult(
        labor_subtotal=labor_subtotal.amount,
        labor_discounts=labor_discounts.amount,
        labor_total=labor_total.amount,
        parts_subtotal=parts_subtotal.amount,
        parts_discounts=parts_discounts.amount,
        parts_total=parts_total.amount,
        work_order_discounts=work_order_discounts.amount,
        subtotal_before_wo_discounts=subtotal_before_wo.amount,
        total_discounts=total_discounts.amount,
        fleet_discount=tax.fleet_discount,
        labor_tax=tax.labor_tax,
        parts_tax=tax.parts_tax,
        total_tax=tax.total_tax,
        final_total=final_total.amount,
        discount_lines=tuple(run.lines),
    )
