"""
Order transaction state machine.

Incoming events move an order's payment state forward; capture, cancel and
refund are operator actions guarded by the same state. There are no locks:
duplicate and out-of-order deliveries are absorbed by the transaction-id
match and the `time_updated` ordering check, each made against the order as
re-read from the store right before it is mutated.
"""
from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from application.dtos.gateway import TransactionResponse
from application.dtos.payments import IncomingEvent, format_amount
from application.ports.payment_gateway import PaymentGateway
from application.ports.scheduler import DeferredDispatch
from application.utils.dates import Clock, is_day_older, utc_now
from core.logging_config import get_logger
from domain.payment.entity import (
    Order,
    OrderMeta,
    OrderState,
    OrderStatus,
    TransactionType,
)
from domain.payment.events import (
    PaymentAuthorised,
    PaymentCancelled,
    PaymentCompleted,
    PaymentEvent,
    PaymentFailed,
    PaymentRefunded,
)
from domain.payment.exceptions import (
    GatewayRequestError,
    InvalidReferenceError,
    OrderNotFoundException,
    OrderProcessingError,
    PaymentRefundError,
)
from domain.payment.references import IncomingReference, OrderReference
from domain.payment.repository import OrderRepository
from shared.codes import (
    PROCESSABLE_ORDER_STATUSES,
    THREE_D_SECURE_FAILURE_STATUSES,
    TRANSACTION_SUCCESS_STATUSES,
)


logger = get_logger(__name__)

CaptureResult = Literal["success", "error"]
CancelResult = Literal["success", "invalid", "error"]


class OrderService:
    """
    订单交易状态机

    职责：
    1. 处理入站事件（幂等、按 created 时间单调推进）
    2. 受状态约束的 capture / cancel / refund
    3. 通过延迟调度推迟 webhook 处理
    4. 产生领域事件
    """

    def __init__(
        self,
        orders: OrderRepository,
        gateway: PaymentGateway,
        scheduler: DeferredDispatch,
        *,
        gateway_id: str,
        payment_reference: str = "",
        scheduled_hook: str = "payments.process_scheduled_order",
        clock: Optional[Clock] = None,
    ) -> None:
        self.orders = orders
        self.gateway = gateway
        self.scheduler = scheduler
        self.gateway_id = gateway_id
        self.payment_reference = payment_reference
        self.scheduled_hook = scheduled_hook
        self.clock = clock or utc_now
        self.events: List[PaymentEvent] = []  # 领域事件收集

    def clear_events(self) -> None:
        self.events.clear()

    def _record(self, event: PaymentEvent) -> None:
        self.events.append(event)
        logger.info("payment_event_recorded", event_name=event.name, **event.log_data())

    def is_day_older(self, timestamp: int) -> bool:
        return is_day_older(timestamp, self.clock())

    def _now_timestamp(self) -> int:
        return int(self.clock().timestamp())

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def get_order_from_reference(self, reference: IncomingReference) -> Order:
        if not isinstance(reference, OrderReference):
            raise InvalidReferenceError("No valid order ID in incoming data.")
        order = await self.orders.get_by_id(reference.order_id)
        if order is None:
            raise OrderNotFoundException(reference.order_id)
        if order.order_key != reference.order_key:
            raise InvalidReferenceError("No valid order ID in incoming data.")
        return order

    async def _get_order(self, order_id: int) -> Order:
        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    async def _get_transaction(self, transaction_id: str) -> TransactionResponse:
        transaction = await self.gateway.get_transaction(transaction_id)
        if transaction.request_is_error():
            raise GatewayRequestError("Failed to get transaction.", details=transaction.log_data())
        logger.debug("transaction_retrieved", transaction_id=transaction_id, **transaction.log_data())
        return transaction

    async def get_transaction_time_updated(self, transaction_id: Optional[str]) -> int:
        """Created time of the transaction as reported remotely, falling back to now."""
        if transaction_id:
            transaction = await self.gateway.get_transaction(transaction_id)
            if transaction.request_is_success() and transaction.created_timestamp:
                return transaction.created_timestamp
            logger.debug("transaction_time_fallback", transaction_id=transaction_id, **transaction.log_data())
        return self._now_timestamp()

    @staticmethod
    def transaction_already_processed(incoming_transaction_id: str, order: Order) -> bool:
        return bool(order.transaction_id) and order.transaction_id == incoming_transaction_id

    def is_processor_order(self, order: Order) -> bool:
        return order.payment_method == self.gateway_id

    # ------------------------------------------------------------------
    # Incoming events
    # ------------------------------------------------------------------
    async def process_order(self, event: IncomingEvent) -> None:
        if not event.is_for_order():
            return

        try:
            order = await self.get_order_from_reference(event.reference)
            logger.debug("incoming_order_found", order_id=order.id, channel=event.channel)

            if self.transaction_already_processed(event.transaction_id, order):
                logger.debug(
                    "incoming_transaction_already_processed",
                    order_id=order.id,
                    transaction_id=event.transaction_id,
                    channel=event.channel,
                )
                return

            transaction = await self._get_transaction(event.transaction_id)
            created = transaction.created_timestamp or 0

            # The remote call is where a concurrent delivery can interleave.
            order = await self._get_order(order.id)
            if self.transaction_already_processed(event.transaction_id, order):
                logger.debug(
                    "incoming_transaction_already_processed",
                    order_id=order.id,
                    transaction_id=event.transaction_id,
                    channel=event.channel,
                )
                return

            if order.time_updated >= created:
                logger.debug(
                    "incoming_transaction_outdated",
                    order_id=order.id,
                    transaction_id=event.transaction_id,
                    order_time_updated=order.time_updated,
                    transaction_created=created,
                )
                return

            if order.status.value not in PROCESSABLE_ORDER_STATUSES:
                raise OrderProcessingError(
                    f"Received incoming {event.channel} data for an order that can't be processed again. "
                    f"Order ID: {order.id}, order status: {order.status.value}.",
                    order_id=order.id,
                )

            await self._apply_transaction(order, transaction, created)
            await self._set_additional_order_data(order, transaction)
            logger.debug(
                "incoming_order_processed",
                order_id=order.id,
                transaction_id=transaction.transaction_id,
                state=order.state.value,
            )
        except Exception as exc:
            logger.error(
                "incoming_order_processing_failed",
                channel=event.channel,
                error=f"Error processing order from incoming {event.channel} data. {exc}",
                **event.log_data(),
            )
            raise

    async def _apply_transaction(self, order: Order, transaction: TransactionResponse, created: int) -> None:
        transaction_id = transaction.transaction_id or ""
        status = transaction.status

        order.transaction_id = transaction_id
        order.transaction_status = status
        order.time_updated = created

        if status in TRANSACTION_SUCCESS_STATUSES:
            if order.transaction_type == TransactionType.AUTHORISATION.value:
                order.state = OrderState.AUTHORISED
                order.status = OrderStatus.ON_HOLD
                order.add_note(f"Payment authorised. Transaction ID: {transaction_id}.")
                self._record(PaymentAuthorised(order_id=order.id, transaction_id=transaction_id))
            else:
                await self.orders.payment_complete(order, transaction_id)
                order.state = OrderState.COMPLETED
                order.time_completed = created
                order.add_note(f"Payment successful. Transaction ID: {transaction_id}.")
                self._record(PaymentCompleted(order_id=order.id, transaction_id=transaction_id))
        elif status == "executed":
            order.state = OrderState.EXECUTED
            order.status = OrderStatus.ON_HOLD
            order.add_note(f"Bank payment executed. Transaction ID: {transaction_id}.")
        else:
            order.state = OrderState.FAILED
            order.status = OrderStatus.FAILED
            order.add_note(f'Payment failed with status "{status}". Transaction ID: {transaction_id}.')
            self._record(PaymentFailed(order_id=order.id, transaction_id=transaction_id, status=status))

        await self.orders.save(order)

    async def _set_additional_order_data(self, order: Order, transaction: TransactionResponse) -> None:
        if transaction.payment_method:
            order.update_meta(OrderMeta.TRANSACTION_PAYMENT_METHOD, transaction.payment_method)
            order.add_note(f"Transaction payment method: {transaction.payment_method}.")

        order.delete_meta(OrderMeta.DECLINE_REASON)
        decline_reason = transaction.decline_reason
        if decline_reason:
            order.update_meta(OrderMeta.DECLINE_REASON, decline_reason)
            order.add_note(f"Transaction decline reason: {decline_reason}.")

        await self.orders.save(order)

    async def schedule_process_order(self, event: IncomingEvent) -> None:
        if not event.is_for_order():
            return

        order = await self.get_order_from_reference(event.reference)
        await self.scheduler.schedule(
            self.scheduled_hook,
            {"webhook_data": event.raw_body, "hash": event.hash},
        )
        logger.debug("incoming_order_scheduled", order_id=order.id, webhook_id=event.webhook_id)

    async def process_scheduled_order(self, event: IncomingEvent) -> None:
        await self.process_order(event)

    async def confirm_order(self, event: IncomingEvent) -> Order:
        """Redirect path: process synchronously and return the fresh order."""
        await self.process_order(event)
        return await self.get_order_from_reference(event.reference)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    def can_be_captured(self, order: Order) -> bool:
        return (
            self.is_processor_order(order)
            and bool(order.transaction_id)
            and order.transaction_type == TransactionType.AUTHORISATION.value
            and order.state == OrderState.AUTHORISED
            and order.total > 0
        )

    async def capture_order(self, order_id: int) -> CaptureResult:
        order = await self.orders.get_by_id(order_id)
        if order is None:
            logger.error("order_capture_failed", order_id=order_id, error="Order not found.")
            return "error"

        if not self.can_be_captured(order):
            message = "Payment capture failed. Capture initiated for an order that can't be captured."
            order.add_note(message)
            await self.orders.save(order)
            logger.error("order_capture_failed", order_id=order.id, error=message)
            return "error"

        response = await self.gateway.capture_transaction(
            order.transaction_id, {"amount": format_amount(order.total)}
        )

        if response.is_captured():
            time_updated = await self.get_transaction_time_updated(response.transaction_id)
            order = await self._get_order(order_id)
            await self.orders.payment_complete(order, response.transaction_id)
            order.state = OrderState.COMPLETED
            order.time_completed = time_updated
            order.time_updated = time_updated
            order.add_note(f"Payment captured successfully. Transaction ID: {response.transaction_id}.")
            await self.orders.save(order)
            self._record(PaymentCompleted(order_id=order.id, transaction_id=response.transaction_id))
            logger.debug("order_captured", order_id=order.id, **response.log_data())
            return "success"

        if response.decline_reason:
            order = await self._get_order(order_id)
            order.status = OrderStatus.FAILED
            order.add_note(
                f'Payment capture declined with status "{response.decline_reason}". '
                f"{response.error_message_formatted(True)}".strip()
            )
            await self.orders.save(order)
            logger.debug("order_capture_declined", order_id=order.id, **response.log_data())
        else:
            logger.error("order_capture_failed", order_id=order.id, **response.log_data())
        return "error"

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------
    def can_be_cancelled(self, order: Order) -> bool:
        return (
            self.is_processor_order(order)
            and bool(order.transaction_id)
            and order.transaction_status in TRANSACTION_SUCCESS_STATUSES
            and order.state in (OrderState.AUTHORISED, OrderState.EXECUTED, OrderState.COMPLETED)
        )

    def _captured_today(self, order: Order) -> bool:
        return (
            order.transaction_type == TransactionType.AUTHORISATION.value
            and order.state == OrderState.COMPLETED
            and not self.is_day_older(order.time_completed)
        )

    async def cancel_order(self, order_id: int) -> CancelResult:
        order = await self.orders.get_by_id(order_id)
        if order is None:
            logger.error("order_cancel_failed", order_id=order_id, error="Order not found.")
            return "error"

        if not self.can_be_cancelled(order):
            message = "Order cancellation failed. Cancellation initiated for an order that can't be cancelled."
            order.add_note(message)
            await self.orders.save(order)
            logger.error("order_cancel_failed", order_id=order.id, error=message)
            return "error"

        if self._captured_today(order):
            message = "Order cancellation failed. Captured orders can be canceled the next day."
            order.add_note(message)
            await self.orders.save(order)
            logger.debug("order_cancel_rejected", order_id=order.id, error=message)
            return "invalid"

        response = await self.gateway.cancel_transaction(
            order.transaction_id, {"reference": self.payment_reference}
        )

        if response.is_cancelled():
            time_updated = await self.get_transaction_time_updated(response.transaction_id)
            order = await self._get_order(order_id)
            order.status = OrderStatus.CANCELLED
            order.state = OrderState.CANCELLED
            order.time_updated = time_updated
            order.add_note(f"Order cancelled successfully. Transaction ID: {response.transaction_id}.")
            await self.orders.save(order)
            self._record(PaymentCancelled(order_id=order.id, transaction_id=response.transaction_id))
            logger.debug("order_cancelled", order_id=order.id, **response.log_data())
            return "success"

        order = await self._get_order(order_id)
        if response.decline_reason:
            note = f'Order cancellation declined with status "{response.decline_reason}".'
            logger.debug("order_cancel_declined", order_id=order.id, **response.log_data())
        else:
            note = "Order cancellation failed."
            logger.error("order_cancel_failed", order_id=order.id, **response.log_data())
        order.add_note(f"{note} {response.error_message_formatted(True)}".strip())
        await self.orders.save(order)
        return "error"

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------
    def _refund_blocker(self, order: Order, amount: Decimal) -> Optional[str]:
        if order.transaction_status not in TRANSACTION_SUCCESS_STATUSES:
            return 'Transaction is not in "success" or "settled" status.'
        if order.state == OrderState.REFUNDED_FULL:
            return "Transaction has already been fully refunded."
        if order.state == OrderState.CANCELLED:
            return "Order has already been cancelled."
        if self._captured_today(order):
            return "Captured orders can be refunded the next day."
        if amount < order.total:
            reference_time = order.time_updated if order.state == OrderState.AUTHORISED else order.time_completed
            if not self.is_day_older(reference_time):
                return "Partial refunds are only available on the next day."
        return None

    async def refund_order(self, order_id: int, amount: Decimal) -> None:
        amount = Decimal(str(amount))
        order = await self._get_order(order_id)

        blocker = self._refund_blocker(order, amount)
        if blocker:
            message = f"Payment refund failed. {blocker}"
            order.add_note(message)
            await self.orders.save(order)
            logger.error("order_refund_failed", order_id=order.id, error=message)
            raise PaymentRefundError(message, order_id=order.id)

        if amount > order.total:
            message = f'Payment refund failed. Refund amount "{amount}" is greater than order total "{order.total}".'
            logger.error("order_refund_failed", order_id=order.id, error=message)
            raise PaymentRefundError(message, order_id=order.id)

        response = await self.gateway.refund_transaction(
            order.transaction_id,
            {"amount": format_amount(amount), "reference": self.payment_reference},
        )

        if response.is_refunded():
            time_updated = await self.get_transaction_time_updated(response.transaction_id)
            order = await self._get_order(order_id)
            full = order.total - amount <= 0
            order.state = OrderState.REFUNDED_FULL if full else OrderState.REFUNDED_PARTIAL
            order.time_updated = time_updated
            order.add_note(f'Payment refunded successfully. Refund amount "{amount}". Transaction ID: {response.transaction_id}.')
            await self.orders.save(order)
            self._record(
                PaymentRefunded(order_id=order.id, transaction_id=response.transaction_id, amount=str(amount), full=full)
            )
            logger.debug("order_refunded", order_id=order.id, **response.log_data())
            return

        order = await self._get_order(order_id)
        if response.decline_reason:
            note = f'Payment refund declined with status "{response.decline_reason}".'
            logger.debug("order_refund_declined", order_id=order.id, **response.log_data())
        else:
            note = "Payment refund failed."
            logger.error("order_refund_failed", order_id=order.id, **response.log_data())
        order.add_note(f"{note} {response.error_message_formatted(True)}".strip())
        await self.orders.save(order)
        raise PaymentRefundError("Payment refund failed. Check order notes for more details.", order_id=order.id)

    # ------------------------------------------------------------------
    # Customer notices
    # ------------------------------------------------------------------
    @staticmethod
    def fail_notice_for_status(transaction_status: str) -> str:
        if transaction_status == "blocked":
            return "Your payment was blocked."
        if transaction_status in THREE_D_SECURE_FAILURE_STATUSES:
            return "Your payment has been declined due to failed authentication with your bank."
        return "Your payment was declined."

    async def get_fail_notice(self, order_id: int) -> Optional[str]:
        order = await self._get_order(order_id)
        if not self.is_processor_order(order) or order.status != OrderStatus.FAILED:
            return None
        return self.fail_notice_for_status(order.transaction_status)
