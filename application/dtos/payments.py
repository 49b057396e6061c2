"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from decimal import Decimal
from functools import cached_property
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field
from pydantic.types import condecimal

from domain.payment.references import (
    IncomingReference,
    OrderReference,
    PaymentMethodReference,
    parse_reference,
)

WEBHOOK_STATUS_UPDATE = "status_update"
WEBHOOK_CARD_NEW = "card_new"
WEBHOOK_CARD_UPDATE = "card_update"

WEBHOOK_TYPES = (WEBHOOK_STATUS_UPDATE, WEBHOOK_CARD_NEW, WEBHOOK_CARD_UPDATE)


class IncomingEvent(BaseModel):
    """Authenticated redirect or webhook data.

    `card_id` may be filled in after construction (redirects learn it from the
    transaction lookup).
    """

    channel: Literal["redirect", "webhook"]
    kind: str = WEBHOOK_STATUS_UPDATE
    order_reference: str = ""
    transaction_id: str = ""
    status: str = ""
    timestamp: int = 0
    card_id: str = ""
    hash: str = ""
    webhook_id: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    raw_body: str = ""

    @cached_property
    def reference(self) -> IncomingReference:
        return parse_reference(self.order_reference)

    def is_for_order(self) -> bool:
        return not isinstance(self.reference, PaymentMethodReference)

    def is_for_payment_method(self) -> bool:
        return isinstance(self.reference, PaymentMethodReference)

    @property
    def order_id(self) -> Optional[int]:
        ref = self.reference
        return ref.order_id if isinstance(ref, OrderReference) else None

    def log_data(self) -> dict[str, Any]:
        return {f"incoming-{self.channel}-data": self.payload}


class RedirectResult(BaseModel):
    """Outcome of a synchronous browser redirect."""

    success: bool
    status: str = ""
    order_id: Optional[int] = None
    order_key: Optional[str] = None
    customer_id: Optional[int] = None
    message: Optional[str] = None


class NoticeData(BaseModel):
    message: str
    type: Literal["success", "error"] = "error"


class RefundRequest(BaseModel):
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    reason: Optional[str] = None


class ActionResult(BaseModel):
    order_id: int
    result: Literal["success", "invalid", "error"]


def format_amount(amount: Decimal) -> float:
    return float(amount)
