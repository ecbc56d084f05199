from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.discount import AUDIT_ACTIONS, AppliedDiscount, DiscountAuditLog

logger = logging.getLogger(__name__)

_SNAPSHOT_FIELDS = (
    "id",
    "owner_kind",
    "owner_id",
    "work_order_id",
    "discount_type_id",
    "discount_name",
    "kind",
    "value",
    "discount_amount",
    "max_discount_amount",
    "applies_to",
    "reason",
    "approval_status",
    "approved_by",
    "approved_at",
    "rejected_by",
    "rejected_at",
    "rejection_reason",
)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def discount_snapshot(discount: AppliedDiscount) -> dict[str, Any]:
    return {name: _json_value(getattr(discount, name, None)) for name in _SNAPSHOT_FIELDS}


def _dump(values: dict[str, Any] | None) -> str | None:
    if values is None:
        return None
    return json.dumps(values, sort_keys=True, default=str)


class DiscountAuditSink:
    """
    Append-only writer for `discount_audit_log`.

    `record` only adds the row to the session; the caller commits it in the
    same transaction as the discount change it describes.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        discount: AppliedDiscount,
        *,
        action: str,
        actor: str,
        performed_at: datetime,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> DiscountAuditLog:
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")
        entry = DiscountAuditLog(
            discount_id=int(discount.id),
            discount_table=discount.discount_table,
            work_order_id=discount.work_order_id,
            action_type=action,
            old_values=_dump(old_values),
            new_values=_dump(new_values),
            performed_by=actor,
            performed_at=performed_at,
            reason=reason,
        )
        self.db.add(entry)
        logger.debug(
            "discount_audit_recorded discount_id=%s action=%s actor=%s",
            discount.id,
            action,
            actor,
        )
        return entry

    def history(self, discount_id: int, *, limit: int | None = None) -> list[DiscountAuditLog]:
        max_rows = max(1, int(limit or settings.DISCOUNT_AUDIT_LOG_LIMIT))
        return (
            self.db.query(DiscountAuditLog)
            .filter(DiscountAuditLog.discount_id == int(discount_id))
            .order_by(DiscountAuditLog.performed_at.asc(), DiscountAuditLog.id.asc())
            .limit(max_rows)
            .all()
        )
