from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PricingFailure(Exception):
    code: str
    message: str
    status_code: int = 400
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> dict:
        detail = {"code": self.code, "message": self.message}
        if self.context:
            detail.update(self.context)
        return detail


@dataclass
class DiscountValidationError(PricingFailure):
    """Bad input shape or range. Nothing was written."""

    code: str = "VALIDATION_ERROR"
    message: str = "Discount request is invalid."
    status_code: int = 400


@dataclass
class NotFoundError(PricingFailure):
    code: str = "NOT_FOUND"
    message: str = "Resource not found."
    status_code: int = 404


@dataclass
class InvalidStateError(PricingFailure):
    """Illegal lifecycle transition. Rejected with no side effects."""

    code: str = "INVALID_STATE"
    message: str = "Discount is not in a state that allows this action."
    status_code: int = 409


@dataclass
class ConsistencyFault(PricingFailure):
    """A state change and its audit row did not commit together."""

    code: str = "CONSISTENCY_FAULT"
    message: str = "Discount change and audit entry could not be committed together."
    status_code: int = 500


@dataclass
class CollaboratorUnavailable(PricingFailure):
    code: str = "WORK_ORDER_SERVICE_UNAVAILABLE"
    message: str = "Work-order service could not be reached."
    status_code: int = 502
