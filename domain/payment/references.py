"""
Composite references carried by the processor as ``order_id``.

``"<order_id>-<order_key>"`` points at an order; ``"<user_id>-add_payment_method-<nonce>"``
belongs to the standalone add-payment-method flow. The string is parsed once
where incoming data enters and the result is passed around from there.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

PAYMENT_METHOD_KEY = "add_payment_method"


@dataclass(frozen=True)
class OrderReference:
    order_id: int
    order_key: str


@dataclass(frozen=True)
class PaymentMethodReference:
    user_id: int
    nonce: str = ""


@dataclass(frozen=True)
class InvalidReference:
    raw: str = ""


IncomingReference = Union[OrderReference, PaymentMethodReference, InvalidReference]


def _positive_int(value: str) -> int:
    return int(value) if value.isdigit() else 0


def parse_reference(raw: str | None) -> IncomingReference:
    raw = (raw or "").strip()
    head, sep, key = raw.partition("-")
    if not sep:
        return InvalidReference(raw)
    if key.startswith(PAYMENT_METHOD_KEY):
        rest = key[len(PAYMENT_METHOD_KEY):]
        # marker must end at a separator or at the end of the string
        if rest and rest[0] not in "-_":
            return InvalidReference(raw)
        return PaymentMethodReference(user_id=_positive_int(head), nonce=rest[1:])
    order_id = _positive_int(head)
    if not order_id or not key or "-" in key:
        return InvalidReference(raw)
    return OrderReference(order_id=order_id, order_key=key)


def is_payment_method_reference(reference: IncomingReference) -> bool:
    return isinstance(reference, PaymentMethodReference)


def format_order_reference(order_id: int, order_key: str) -> str:
    return f"{order_id}-{order_key}"


def format_payment_method_reference(user_id: int, nonce: str) -> str:
    return f"{user_id}-{PAYMENT_METHOD_KEY}-{nonce}"
