"""
Stored payment method (card token) reconciliation.

Cards reach the local token store from three directions: the add-payment-method
redirect, the deferred `card_new` webhook, and `card_update` webhooks. Every
save path re-checks token existence first, so whichever arrives second is a
no-op.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional, TypeVar

from application.dtos.gateway import CardResponse
from application.dtos.payments import IncomingEvent, NoticeData
from application.ports.payment_gateway import PaymentGateway
from application.ports.scheduler import DeferredDispatch
from core.logging_config import get_logger
from domain.payment.entity import Customer, Order, PaymentToken
from domain.payment.exceptions import (
    CustomerNotFoundException,
    InvalidReferenceError,
    OrderNotFoundException,
    PaymentMethodError,
    PaymentTokenNotFoundException,
)
from domain.payment.references import OrderReference, PaymentMethodReference
from domain.payment.repository import (
    CustomerRepository,
    OrderRepository,
    PaymentTokenRepository,
)
from shared.codes import (
    PAYMENT_METHOD_SUCCESS_STATUSES,
    THREE_D_SECURE_FAILURE_STATUSES,
)


logger = get_logger(__name__)

T = TypeVar("T")


def card_to_token_fields(card: dict) -> dict[str, str]:
    """Map processor card data onto token fields (all strings, fixed width)."""
    number = str(card.get("number", ""))
    year = str(card.get("expiry_year") or "0").strip()
    last4 = number.zfill(4) if number.isdigit() and len(number) < 4 else number[-4:]
    return {
        "card_type": str(card.get("scheme", "")),
        "last4": last4,
        "expiry_month": str(card.get("expiry_month", "")).zfill(2),
        # non-numeric years leave the field empty so token validation fails
        "expiry_year": str(2000 + int(year)) if year.isdigit() else "",
    }


class PaymentMethodService:
    def __init__(
        self,
        customers: CustomerRepository,
        tokens: PaymentTokenRepository,
        orders: OrderRepository,
        gateway: PaymentGateway,
        scheduler: DeferredDispatch,
        *,
        gateway_id: str,
        tokenization_enabled: bool,
        scheduled_hook: str = "payments.process_scheduled_payment_method",
    ) -> None:
        self.customers = customers
        self.tokens = tokens
        self.orders = orders
        self.gateway = gateway
        self.scheduler = scheduler
        self.gateway_id = gateway_id
        self.tokenization_enabled = tokenization_enabled
        self.scheduled_hook = scheduled_hook

    @staticmethod
    def is_transaction_success(status: str) -> bool:
        return status in PAYMENT_METHOD_SUCCESS_STATUSES

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def get_customer_from_reference(self, event: IncomingEvent) -> Customer:
        reference = event.reference
        user_id = reference.user_id if isinstance(reference, PaymentMethodReference) else 0
        if not user_id:
            raise InvalidReferenceError("No valid customer ID in incoming data.")
        customer = await self.customers.get_by_id(user_id)
        if customer is None:
            raise CustomerNotFoundException(f"Failed to find customer. Customer ID: {user_id}.", customer_id=user_id)
        return customer

    async def get_order_from_reference(self, event: IncomingEvent) -> Order:
        reference = event.reference
        if not isinstance(reference, OrderReference):
            raise InvalidReferenceError("No valid order ID in incoming data.")
        order = await self.orders.get_by_id(reference.order_id)
        if order is None:
            raise OrderNotFoundException(reference.order_id)
        if order.order_key != reference.order_key:
            raise InvalidReferenceError("No valid order ID in incoming data.")
        return order

    async def get_customer_by_processor_id(self, processor_customer_id: Optional[str]) -> Customer:
        customer = None
        if processor_customer_id:
            customer = await self.customers.get_by_processor_customer_id(processor_customer_id)
        if customer is None:
            raise CustomerNotFoundException("User not found.", customer_id=processor_customer_id)
        return customer

    async def get_card(self, card_id: str) -> CardResponse:
        card = await self.gateway.get_card(card_id)
        if card.is_active():
            return card
        if card.request_is_error():
            raise PaymentMethodError("Card retrieval failed.")
        raise PaymentMethodError("Card is not active.")

    async def get_card_id_from_transaction(self, transaction_id: str) -> str:
        transaction = await self.gateway.get_transaction(transaction_id, ["card_id"])
        if transaction.request_is_error():
            raise PaymentMethodError("Card ID retrieval failed.")
        if not transaction.card_id:
            raise PaymentMethodError("Card ID not found.")
        return transaction.card_id

    async def get_token_by_user_and_card_id(self, user_id: int, card_id: str) -> PaymentToken:
        for token in await self.tokens.list_by_user(user_id, self.gateway_id):
            if token.token == card_id:
                return token
        raise PaymentTokenNotFoundException()

    async def payment_token_exists(self, user_id: int, card_id: str) -> bool:
        try:
            await self.get_token_by_user_and_card_id(user_id, card_id)
        except PaymentTokenNotFoundException:
            return False
        return True

    # ------------------------------------------------------------------
    # Token writes
    # ------------------------------------------------------------------
    async def _create_token(self, card: CardResponse, user_id: int, order: Optional[Order] = None) -> PaymentToken:
        token = PaymentToken(
            id=None,
            token=card.card_id or "",
            user_id=user_id,
            gateway_id=self.gateway_id,
            **card_to_token_fields(card.card_data or {}),
        )
        if not token.validate():
            raise PaymentMethodError("Failed to validate token.")
        token = await self.tokens.create(token)
        if order is not None and token.id is not None:
            order.add_payment_token(token.id)
            await self.orders.save(order)
        return token

    async def _update_token(self, token: PaymentToken, card: CardResponse) -> PaymentToken:
        for name, value in card_to_token_fields(card.card_data or {}).items():
            setattr(token, name, value)
        if not token.validate():
            raise PaymentMethodError("Failed to validate token.")
        return await self.tokens.update(token)

    async def _run(self, operation: str, event: IncomingEvent, process: Callable[[], Awaitable[T]]) -> T:
        if not self.tokenization_enabled:
            error = f"Payment method {operation} failed. Tokenization is disabled."
            logger.error("payment_method_failed", error=error, **event.log_data())
            raise PaymentMethodError(error)
        try:
            return await process()
        except Exception as exc:
            logger.error(
                "payment_method_failed",
                error=f"Payment method {operation} failed. {exc}",
                **event.log_data(),
            )
            raise

    # ------------------------------------------------------------------
    # Incoming events
    # ------------------------------------------------------------------
    async def schedule_save_payment_method(self, event: IncomingEvent) -> None:
        try:
            customer = await self.get_customer_from_reference(event)
            await self.scheduler.schedule(
                self.scheduled_hook,
                {"webhook_data": event.raw_body, "hash": event.hash},
            )
        except Exception as exc:
            logger.error(
                "payment_method_schedule_failed",
                error=f"Error scheduling save payment method from incoming webhook data. Error: {exc}",
                **event.log_data(),
            )
            raise
        logger.debug("payment_method_scheduled", user_id=customer.id, webhook_id=event.webhook_id)

    async def save_payment_method_from_customer(self, event: IncomingEvent) -> PaymentToken:
        async def process() -> PaymentToken:
            customer = await self.get_customer_from_reference(event)
            logger.debug("payment_method_customer_found", user_id=customer.id, channel=event.channel)
            card = await self.get_card(event.card_id)
            token = await self._create_token(card, customer.id)
            logger.debug("payment_method_saved", user_id=customer.id, channel=event.channel, token_id=token.id)
            return token

        return await self._run("saving", event, process)

    async def save_payment_method_from_order(self, event: IncomingEvent) -> PaymentToken:
        async def process() -> PaymentToken:
            order = await self.get_order_from_reference(event)
            logger.debug("payment_method_order_found", order_id=order.id)
            card = await self.get_card(event.card_id)
            if not order.customer_id:
                raise CustomerNotFoundException(
                    f"Failed to find customer. Customer ID: {order.customer_id}.", customer_id=order.customer_id
                )
            token = await self._create_token(card, order.customer_id, order)
            logger.debug("payment_method_saved", order_id=order.id, token_id=token.id)
            return token

        return await self._run("saving", event, process)

    async def update_payment_method(self, event: IncomingEvent) -> PaymentToken:
        async def process() -> PaymentToken:
            card = await self.get_card(event.card_id)
            logger.debug("payment_method_card_found", card_id=event.card_id)
            customer = await self.get_customer_by_processor_id(card.customer_id)
            token = await self.get_token_by_user_and_card_id(customer.id, event.card_id)
            token = await self._update_token(token, card)
            logger.debug("payment_method_updated", user_id=customer.id, token_id=token.id)
            return token

        return await self._run("updating", event, process)

    async def process_scheduled_save_payment_method(self, event: IncomingEvent) -> None:
        try:
            customer = await self.get_customer_from_reference(event)
            if await self.payment_token_exists(customer.id, event.card_id):
                logger.debug(
                    "payment_method_already_saved",
                    user_id=customer.id,
                    card_id=event.card_id,
                )
                return
            await self.save_payment_method_from_customer(event)
        except Exception as exc:
            logger.error(
                "payment_method_scheduled_failed",
                error=f"Error saving payment method from scheduled webhook data. {exc}",
                **event.log_data(),
            )
            raise

    async def confirm_payment_method(self, event: IncomingEvent) -> Customer:
        """Redirect path: learn the card from the transaction and save it once."""
        try:
            customer = await self.get_customer_from_reference(event)
            event.card_id = await self.get_card_id_from_transaction(event.transaction_id)
            if not await self.payment_token_exists(customer.id, event.card_id):
                await self.save_payment_method_from_customer(event)
            return customer
        except Exception as exc:
            logger.error(
                "payment_method_confirm_failed",
                error=f"Error saving payment method from incoming redirect data. {exc}",
                **event.log_data(),
            )
            raise

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------
    async def deactivate_card(self, token: PaymentToken) -> bool:
        response = await self.gateway.update_card(token.token, {"is_active": False})
        if response.request_is_success():
            logger.debug("payment_method_deactivated", token_id=token.id, **response.log_data())
            return True
        logger.error("payment_method_deactivation_failed", token_id=token.id, **response.log_data())
        return False

    async def delete_payment_method(self, user_id: int, token_id: int) -> None:
        token = await self.tokens.get_by_id(token_id)
        if token is None or token.user_id != user_id or token.gateway_id != self.gateway_id:
            raise PaymentTokenNotFoundException()
        await self.tokens.delete(token_id)
        await self.deactivate_card(token)

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------
    def get_notice_data(self, status: str) -> NoticeData:
        if self.is_transaction_success(status):
            return NoticeData(message="Payment method successfully added.", type="success")
        if status == "error":
            message = "Unable to add payment method to your account."
        elif status == "blocked":
            message = "Your payment method was blocked."
        elif status in THREE_D_SECURE_FAILURE_STATUSES:
            message = "Your payment method has been declined due to failed authentication with your bank."
        else:
            message = "Your payment method was declined."
        return NoticeData(message=message, type="error")
