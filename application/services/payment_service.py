"""
Application service orchestrating payment use-cases.

This class is the single entry point for the HTTP routes and deferred tasks:
it authenticates incoming data, dispatches it to the order state machine or
the payment method reconciler, and exposes the operator actions. Gateway,
stores and dispatcher are injected from the composition root.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional

from application.dtos.payments import (
    IncomingEvent,
    NoticeData,
    RedirectResult,
    WEBHOOK_CARD_NEW,
    WEBHOOK_CARD_UPDATE,
    WEBHOOK_STATUS_UPDATE,
)
from application.services.incoming_data_service import IncomingDataService
from application.services.order_service import CancelResult, CaptureResult, OrderService
from application.services.payment_method_service import PaymentMethodService
from core.logging_config import get_logger


logger = get_logger(__name__)


class PaymentService:
    def __init__(
        self,
        incoming: IncomingDataService,
        orders: OrderService,
        payment_methods: PaymentMethodService,
    ) -> None:
        self.incoming = incoming
        self.orders = orders
        self.payment_methods = payment_methods

    async def handle_webhook(self, raw_body: str | bytes, hash: Optional[str]) -> IncomingEvent:
        """Authenticate and route a webhook; heavy work is deferred."""
        event = self.incoming.parse_webhook(raw_body, hash)
        logger.info("payment_webhook_parsed", webhook_type=event.kind, webhook_id=event.webhook_id)

        if event.kind == WEBHOOK_STATUS_UPDATE:
            await self.orders.schedule_process_order(event)
        elif event.kind == WEBHOOK_CARD_NEW:
            if event.is_for_payment_method():
                await self.payment_methods.schedule_save_payment_method(event)
            else:
                await self.payment_methods.save_payment_method_from_order(event)
        elif event.kind == WEBHOOK_CARD_UPDATE:
            await self.payment_methods.update_payment_method(event)
        return event

    async def handle_order_redirect(self, fields: Mapping[str, Any]) -> RedirectResult:
        try:
            event = self.incoming.parse_redirect(fields)
            order = await self.orders.confirm_order(event)
        except Exception as exc:
            logger.error("payment_redirect_failed", flow="order", error=str(exc))
            return RedirectResult(success=False, status="error", message=str(exc))

        logger.info("payment_redirect_processed", flow="order", order_id=order.id, state=order.state.value)
        return RedirectResult(success=True, status=event.status, order_id=order.id, order_key=order.order_key)

    async def handle_payment_method_redirect(self, fields: Mapping[str, Any]) -> RedirectResult:
        try:
            event = self.incoming.parse_redirect(fields)
            status = event.status
            customer_id = None
            if self.payment_methods.is_transaction_success(status):
                customer = await self.payment_methods.confirm_payment_method(event)
                customer_id = customer.id
        except Exception as exc:
            logger.error("payment_redirect_failed", flow="payment_method", error=str(exc))
            return RedirectResult(success=False, status="error", message=str(exc))

        return RedirectResult(
            success=self.payment_methods.is_transaction_success(status),
            status=status,
            customer_id=customer_id,
        )

    async def run_scheduled_order(self, webhook_data: str, hash: str) -> bool:
        """Deferred re-entry for status updates. Failures are logged, not retried."""
        try:
            event = self.incoming.parse_webhook(webhook_data, hash)
            await self.orders.process_scheduled_order(event)
        except Exception as exc:
            logger.error("scheduled_order_processing_failed", error=str(exc))
            return False
        return True

    async def run_scheduled_payment_method(self, webhook_data: str, hash: str) -> bool:
        try:
            event = self.incoming.parse_webhook(webhook_data, hash)
            await self.payment_methods.process_scheduled_save_payment_method(event)
        except Exception as exc:
            logger.error("scheduled_payment_method_saving_failed", error=str(exc))
            return False
        return True

    async def capture(self, order_id: int) -> CaptureResult:
        logger.info("payment_capture_request", order_id=order_id)
        return await self.orders.capture_order(order_id)

    async def cancel(self, order_id: int) -> CancelResult:
        logger.info("payment_cancel_request", order_id=order_id)
        return await self.orders.cancel_order(order_id)

    async def refund(self, order_id: int, amount: Decimal) -> None:
        logger.info("payment_refund_request", order_id=order_id, amount=str(amount))
        await self.orders.refund_order(order_id, amount)

    async def fail_notice(self, order_id: int) -> Optional[str]:
        return await self.orders.get_fail_notice(order_id)

    def payment_method_notice(self, status: str) -> NoticeData:
        return self.payment_methods.get_notice_data(status)

    async def delete_payment_method(self, user_id: int, token_id: int) -> None:
        await self.payment_methods.delete_payment_method(user_id, token_id)

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.orders.gateway, "aclose", None)
        if callable(close):
            await close()
