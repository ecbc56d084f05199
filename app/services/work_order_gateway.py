from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Protocol

import requests

from app.core.config import settings
from app.core.money import ZERO, round_money
from app.models.discount import (
    OWNER_JOB_LINE,
    OWNER_PART,
    OWNER_WORK_ORDER,
    TARGET_LABOR,
    TARGET_PARTS,
)
from app.services.pricing_errors import CollaboratorUnavailable, NotFoundError

logger = logging.getLogger(__name__)

# Work-order statuses after which pricing is frozen.
LOCKED_WORK_ORDER_STATUSES = frozenset({"completed", "invoiced", "closed", "cancelled"})

_OWNER_PATHS = {
    OWNER_JOB_LINE: "job-lines",
    OWNER_PART: "parts",
    OWNER_WORK_ORDER: "work-orders",
}


@dataclass(frozen=True)
class OwnerRecord:
    """Read-only view of the entity a discount is attached to."""

    owner_kind: str
    owner_id: int
    work_order_id: int
    is_editable: bool
    amount: Decimal = ZERO
    labor_total: Decimal = ZERO
    parts_total: Decimal = ZERO

    def base_for(self, applies_to: str | None) -> Decimal:
        if self.owner_kind != OWNER_WORK_ORDER:
            return self.amount
        if applies_to == TARGET_LABOR:
            return self.labor_total
        if applies_to == TARGET_PARTS:
            return self.parts_total
        return round_money(self.labor_total + self.parts_total)


class WorkOrderGateway(Protocol):
    def load_owner(self, owner_kind: str, owner_id: int) -> OwnerRecord:
        ...


def _decimal_field(body: dict[str, Any], *keys: str) -> Decimal:
    for key in keys:
        raw = body.get(key)
        if raw is None or raw == "":
            continue
        try:
            return round_money(Decimal(str(raw)))
        except InvalidOperation as exc:
            raise requests.RequestException(f"Work-order service returned a non-numeric '{key}'.") from exc
    return ZERO


def _is_editable(body: dict[str, Any]) -> bool:
    if "is_editable" in body:
        return bool(body.get("is_editable"))
    status = str(body.get("status") or "").strip().lower()
    return status not in LOCKED_WORK_ORDER_STATUSES


def owner_from_payload(owner_kind: str, owner_id: int, body: dict[str, Any]) -> OwnerRecord:
    if owner_kind == OWNER_WORK_ORDER:
        work_order_id = int(body.get("id") or owner_id)
    else:
        raw_work_order_id = body.get("work_order_id")
        if raw_work_order_id is None:
            raise requests.RequestException("Work-order service payload missing 'work_order_id'.")
        work_order_id = int(raw_work_order_id)
    return OwnerRecord(
        owner_kind=owner_kind,
        owner_id=int(owner_id),
        work_order_id=work_order_id,
        is_editable=_is_editable(body),
        amount=_decimal_field(body, "total_amount", "total_price"),
        labor_total=_decimal_field(body, "labor_total"),
        parts_total=_decimal_field(body, "parts_total"),
    )


class WorkOrderServiceClient:
    """`requests` client for the managed work-order backend."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.base_url = (base_url or settings.WORK_ORDER_SERVICE_URL).rstrip("/")
        self.api_key = settings.WORK_ORDER_SERVICE_API_KEY if api_key is None else api_key
        self.timeout_seconds = timeout_seconds or settings.WORK_ORDER_SERVICE_TIMEOUT_SECONDS

    def _get(self, path: str) -> requests.Response:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return requests.get(
            f"{self.base_url}/{path}",
            headers=headers or None,
            timeout=self.timeout_seconds,
        )

    def load_owner(self, owner_kind: str, owner_id: int) -> OwnerRecord:
        path = f"{_OWNER_PATHS[owner_kind]}/{int(owner_id)}"
        try:
            response = self._get(path)
            if response.status_code == 404:
                raise NotFoundError(
                    message=f"{owner_kind} {owner_id} was not found.",
                    context={"owner_kind": owner_kind, "owner_id": owner_id},
                )
            response.raise_for_status()
            try:
                body = response.json()
            except ValueError as exc:
                raise requests.RequestException("Work-order service returned invalid JSON.") from exc
            if not isinstance(body, dict):
                raise requests.RequestException("Work-order service returned a non-object JSON payload.")
            return owner_from_payload(owner_kind, owner_id, body)
        except requests.RequestException as exc:
            logger.warning(
                "work_order_service_failed owner_kind=%s owner_id=%s error=%s",
                owner_kind,
                owner_id,
                exc,
            )
            raise CollaboratorUnavailable(
                context={"owner_kind": owner_kind, "owner_id": owner_id},
            ) from exc
