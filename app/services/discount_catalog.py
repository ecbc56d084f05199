from __future__ import annotations

from typing import Iterable

from sqlalchemy.orm import Session

from app.models.discount import CATEGORY_ANY, DiscountType
from app.schemas.discount import DiscountTypeRead
from app.services.pricing_errors import NotFoundError


class DiscountCatalog:
    """
    Point-in-time snapshot of the discount-type catalog.

    Built once per request and passed into the discount and pricing
    services. Inactive entries stay resolvable so discounts created
    before a type was retired can still be recalculated.
    """

    def __init__(self, entries: Iterable[DiscountTypeRead] = ()):
        self._entries: dict[int, DiscountTypeRead] = {int(entry.id): entry for entry in entries}

    @classmethod
    def from_rows(cls, rows: Iterable[DiscountType]) -> "DiscountCatalog":
        return cls(DiscountTypeRead.model_validate(row) for row in rows)

    @classmethod
    def load(cls, db: Session) -> "DiscountCatalog":
        rows = db.query(DiscountType).order_by(DiscountType.id.asc()).all()
        return cls.from_rows(rows)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, discount_type_id: object) -> bool:
        return discount_type_id in self._entries

    def get(self, discount_type_id: int | None) -> DiscountTypeRead | None:
        if discount_type_id is None:
            return None
        return self._entries.get(int(discount_type_id))

    def resolve(self, discount_type_id: int) -> DiscountTypeRead:
        entry = self.get(discount_type_id)
        if entry is None:
            raise NotFoundError(
                message=f"Discount type {discount_type_id} was not found.",
                context={"discount_type_id": discount_type_id},
            )
        return entry

    def available_for(self, category: str | None = None) -> list[DiscountTypeRead]:
        normalized = (category or "").strip().lower()
        rows = [
            entry
            for entry in self._entries.values()
            if entry.is_active
            and (not normalized or entry.applies_to in {normalized, CATEGORY_ANY})
        ]
        return sorted(rows, key=lambda entry: ((entry.name or "").lower(), entry.id))
