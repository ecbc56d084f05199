from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.discount import (
    ACTIVE_STATUSES,
    CATALOG_CATEGORIES,
    DISCOUNT_KINDS,
    OWNER_KINDS,
    WORK_ORDER_TARGETS,
)
from .base import BaseSchema, SnapshotSchema


def _normalize_choice(value: str | None, allowed: frozenset[str], label: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(sorted(allowed))}.")
    return normalized


def normalize_owner_kind(value: str) -> str:
    return _normalize_choice(value, OWNER_KINDS, "owner_kind")


class DiscountTypeRead(SnapshotSchema):
    id: int
    name: str
    description: str | None = None
    kind: str
    default_value: Decimal
    applies_to: str
    is_active: bool = True
    requires_approval: bool = False
    max_discount_amount: Decimal | None = None

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: str) -> str:
        return _normalize_choice(value, DISCOUNT_KINDS, "kind")

    @field_validator("applies_to")
    @classmethod
    def validate_applies_to(cls, value: str) -> str:
        return _normalize_choice(value, CATALOG_CATEGORIES, "applies_to")


class ApplyDiscountRequest(BaseModel):
    """
    Either `discount_type_id` (catalog discount) or `discount_name` + `kind`
    + `value` (ad hoc discount). For catalog discounts `value` overrides the
    type's default value. The kind always comes from the type; a
    conflicting `kind` is rejected.
    """

    discount_type_id: int | None = Field(default=None, ge=1)
    discount_name: str | None = Field(default=None, max_length=120)
    kind: str | None = None
    value: Decimal | None = Field(default=None, max_digits=15, decimal_places=2)
    applies_to: str | None = None
    reason: str | None = Field(default=None, max_length=1000)
    requires_approval: bool = False

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: str | None) -> str | None:
        return _normalize_choice(value, DISCOUNT_KINDS, "kind")

    @field_validator("applies_to")
    @classmethod
    def validate_applies_to(cls, value: str | None) -> str | None:
        return _normalize_choice(value, WORK_ORDER_TARGETS, "applies_to")

    @field_validator("discount_name", "reason")
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def validate_source(self) -> "ApplyDiscountRequest":
        if self.discount_type_id is not None:
            return self
        missing = [
            name
            for name, current in (
                ("discount_name", self.discount_name),
                ("kind", self.kind),
                ("value", self.value),
            )
            if current is None
        ]
        if missing:
            raise ValueError(
                "Ad hoc discounts require " + ", ".join(missing) + "."
            )
        return self


class ModifyDiscountRequest(BaseModel):
    discount_name: str | None = Field(default=None, max_length=120)
    kind: str | None = None
    value: Decimal | None = Field(default=None, max_digits=15, decimal_places=2)
    applies_to: str | None = None
    reason: str | None = Field(default=None, max_length=1000)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: str | None) -> str | None:
        return _normalize_choice(value, DISCOUNT_KINDS, "kind")

    @field_validator("applies_to")
    @classmethod
    def validate_applies_to(cls, value: str | None) -> str | None:
        return _normalize_choice(value, WORK_ORDER_TARGETS, "applies_to")

    @field_validator("discount_name", "reason")
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class RejectDiscountRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


class AppliedDiscountRead(SnapshotSchema):
    id: int
    owner_kind: str
    owner_id: int
    work_order_id: int
    discount_type_id: int | None = None
    discount_name: str
    kind: str
    value: Decimal
    discount_amount: Decimal
    max_discount_amount: Decimal | None = None
    applies_to: str | None = None
    reason: str | None = None
    approval_status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    created_by: str
    created_at: datetime

    @property
    def is_active(self) -> bool:
        return self.approval_status in ACTIVE_STATUSES


class DiscountAuditLogRead(BaseSchema):
    id: int
    discount_id: int
    discount_table: str
    work_order_id: int | None = None
    action_type: str
    old_values: dict | None = None
    new_values: dict | None = None
    performed_by: str
    performed_at: datetime
    reason: str | None = None

    @field_validator("old_values", "new_values", mode="before")
    @classmethod
    def decode_snapshot(cls, value):
        if value is None or isinstance(value, dict):
            return value
        try:
            decoded = json.loads(value)
        except (TypeError, ValueError):
            return {"raw": str(value)}
        return decoded if isinstance(decoded, dict) else {"raw": decoded}


class DiscountListResponse(BaseModel):
    work_order_id: int
    discounts: list[AppliedDiscountRead]


class DiscountAuditHistoryResponse(BaseModel):
    discount_id: int
    entries: list[DiscountAuditLogRead]


class DiscountRemovedResponse(BaseModel):
    discount_id: int
    removed: bool = True
