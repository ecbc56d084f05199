"""
Seed the discount-type catalog with a starter set of entries.

Rows are upserted by id, so re-running the script refreshes names and
values without duplicating entries. Run once against a fresh database:

    python -m scripts.seed_discount_types
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.discount import DiscountType

DISCOUNT_TYPES: list[dict[str, Any]] = [
    {
        "id": 1,
        "name": "Senior Citizen",
        "description": "10% off labor for senior customers",
        "kind": "percentage",
        "default_value": Decimal("10.00"),
        "applies_to": "labor",
        "requires_approval": False,
    },
    {
        "id": 2,
        "name": "Military",
        "description": "15% off for active and veteran service members",
        "kind": "percentage",
        "default_value": Decimal("15.00"),
        "applies_to": "any",
        "requires_approval": False,
        "max_discount_amount": Decimal("250.00"),
    },
    {
        "id": 3,
        "name": "Parts Price Match",
        "description": "Match a competitor's parts price",
        "kind": "fixed_amount",
        "default_value": Decimal("0.00"),
        "applies_to": "parts",
        "requires_approval": True,
    },
    {
        "id": 4,
        "name": "Loyalty Credit",
        "description": "Flat credit for repeat customers",
        "kind": "fixed_amount",
        "default_value": Decimal("25.00"),
        "applies_to": "work_order",
        "requires_approval": False,
    },
    {
        "id": 5,
        "name": "Manager Goodwill",
        "description": "Discretionary goodwill adjustment",
        "kind": "percentage",
        "default_value": Decimal("20.00"),
        "applies_to": "work_order",
        "requires_approval": True,
        "max_discount_amount": Decimal("500.00"),
    },
]


def _upsert_by_id(
    db: Session,
    row_id: int,
    data: dict[str, Any],
    new_objects: list[DiscountType],
) -> None:
    obj = db.get(DiscountType, row_id)
    if obj:
        for key, value in data.items():
            setattr(obj, key, value)
        return
    new_objects.append(DiscountType(id=row_id, **data))


def seed_discount_types(db: Session) -> int:
    new_objects: list[DiscountType] = []
    for row in DISCOUNT_TYPES:
        data = dict(row)
        row_id = data.pop("id")
        data.setdefault("max_discount_amount", None)
        data.setdefault("is_active", True)
        _upsert_by_id(db, row_id, data, new_objects)
    if new_objects:
        db.add_all(new_objects)
    db.commit()
    return len(new_objects)


def main() -> None:
    db = SessionLocal()
    try:
        created = seed_discount_types(db)
        print(f"discount types seeded: {created} new, {len(DISCOUNT_TYPES) - created} refreshed")
    finally:
        db.close()


if __name__ == "__main__":
    main()
