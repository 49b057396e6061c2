"""
Payment processor port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from application.dtos.gateway import (
    CancelResponse,
    CaptureResponse,
    CardResponse,
    CustomerResponse,
    GatewayResponse,
    RefundResponse,
    TransactionResponse,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the remote payment processor.

    Calls never raise for remote failures; the returned response carries
    success, decline and error details.
    """

    provider: str

    async def get_transaction(self, transaction_id: str, fields: Optional[list[str]] = None) -> TransactionResponse: ...

    async def capture_transaction(self, transaction_id: str, body: dict) -> CaptureResponse: ...

    async def cancel_transaction(self, transaction_id: str, body: dict) -> CancelResponse: ...

    async def refund_transaction(self, transaction_id: str, body: dict) -> RefundResponse: ...

    async def get_card(self, card_id: str) -> CardResponse: ...

    async def update_card(self, card_id: str, body: dict) -> GatewayResponse: ...

    async def get_customer(self, customer_id: str) -> CustomerResponse: ...
