from datetime import datetime, timezone
from decimal import Decimal

import pytest

from application.dtos.gateway import CancelResponse, CaptureResponse, RefundResponse
from application.utils.dates import is_day_older
from domain.payment.entity import Order, OrderState, OrderStatus, TransactionType
from domain.payment.events import PaymentCancelled, PaymentRefunded
from domain.payment.exceptions import OrderNotFoundException, PaymentRefundError
from tests.fakes import ok


TODAY_10 = 1715767200      # 2024-05-15 10:00 UTC, same day as the test clock
YESTERDAY_10 = 1715680800  # 2024-05-14 10:00 UTC
T_11 = "2024-05-15T11:00:00Z"
T_11_EPOCH = 1715770800


def _order(
    *,
    transaction_type=TransactionType.CAPTURE,
    state=OrderState.COMPLETED,
    status=OrderStatus.PROCESSING,
    time_updated=YESTERDAY_10,
    time_completed=YESTERDAY_10,
    transaction_status="success",
    total="100.00",
    payment_method="acquired",
):
    order = Order(
        id=101,
        order_key="wc_order_abc",
        total=Decimal(total),
        status=status,
        customer_id=7,
        payment_method=payment_method,
        transaction_id="t1",
    )
    order.transaction_type = transaction_type
    order.state = state
    order.transaction_status = transaction_status
    order.time_updated = time_updated
    order.time_completed = time_completed if state == OrderState.COMPLETED else 0
    return order


def _authorised():
    return _order(
        transaction_type=TransactionType.AUTHORISATION,
        state=OrderState.AUTHORISED,
        status=OrderStatus.ON_HOLD,
    )


def _action(response_type, status="success", transaction_id="t1"):
    return ok(response_type, {"transaction_id": transaction_id, "status": status})


# ----------------------------------------------------------------------
# Capture
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_capture_authorised_order(order_service, orders, gateway):
    orders.add(_authorised())
    gateway.capture_response = _action(CaptureResponse)
    gateway.add_transaction("t1", "success", T_11)

    assert await order_service.capture_order(101) == "success"

    order = orders.peek(101)
    assert order.state == OrderState.COMPLETED
    assert order.status == OrderStatus.PROCESSING
    assert order.time_completed == T_11_EPOCH
    assert orders.completed == [(101, "t1")]
    assert gateway.calls["capture_transaction"] == [("t1", {"amount": 100.0})]


@pytest.mark.asyncio
async def test_capture_refused_locally_for_unauthorised_order(order_service, orders, gateway):
    orders.add(_order())

    assert await order_service.capture_order(101) == "error"

    assert gateway.calls["capture_transaction"] == []
    assert orders.peek(101).notes[-1] == (
        "Payment capture failed. Capture initiated for an order that can't be captured."
    )


@pytest.mark.asyncio
async def test_capture_refused_for_zero_total(order_service, orders, gateway):
    order = _authorised()
    order.total = Decimal("0")
    orders.add(order)

    assert await order_service.capture_order(101) == "error"
    assert gateway.calls["capture_transaction"] == []


@pytest.mark.asyncio
async def test_capture_declined_marks_order_failed(order_service, orders, gateway):
    orders.add(_authorised())
    gateway.capture_response = _action(CaptureResponse, status="declined")

    assert await order_service.capture_order(101) == "error"

    order = orders.peek(101)
    assert order.status == OrderStatus.FAILED
    assert order.state == OrderState.AUTHORISED
    assert order.notes[-1] == 'Payment capture declined with status "declined".'


@pytest.mark.asyncio
async def test_capture_decline_shows_fail_notice(order_service, orders, gateway):
    orders.add(_authorised())
    gateway.capture_response = _action(CaptureResponse, status="declined")

    await order_service.capture_order(101)

    assert await order_service.get_fail_notice(101) == "Your payment was declined."


@pytest.mark.asyncio
async def test_capture_error_leaves_order_untouched(order_service, orders, gateway):
    orders.add(_authorised())
    before = orders.peek(101)

    assert await order_service.capture_order(101) == "error"

    assert orders.peek(101) == before


@pytest.mark.asyncio
async def test_capture_unknown_order(order_service):
    assert await order_service.capture_order(999) == "error"


# ----------------------------------------------------------------------
# Cancel
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cancel_authorised_order(order_service, orders, gateway):
    orders.add(_authorised())
    gateway.cancel_response = _action(CancelResponse)
    gateway.add_transaction("t1", "success", T_11)

    assert await order_service.cancel_order(101) == "success"

    order = orders.peek(101)
    assert order.state == OrderState.CANCELLED
    assert order.status == OrderStatus.CANCELLED
    assert order.time_updated == T_11_EPOCH
    assert gateway.calls["cancel_transaction"] == [("t1", {"reference": "Online order"})]
    assert isinstance(order_service.events[-1], PaymentCancelled)


@pytest.mark.asyncio
async def test_cancel_same_day_capture_is_invalid(order_service, orders, gateway):
    orders.add(_order(transaction_type=TransactionType.AUTHORISATION, time_completed=TODAY_10))
    before = orders.peek(101)

    assert await order_service.cancel_order(101) == "invalid"

    after = orders.peek(101)
    assert gateway.calls["cancel_transaction"] == []
    assert (after.state, after.status, after.transaction_status) == (before.state, before.status, before.transaction_status)
    assert after.notes[-1] == "Order cancellation failed. Captured orders can be canceled the next day."


@pytest.mark.asyncio
async def test_cancel_capture_from_yesterday_goes_remote(order_service, orders, gateway):
    orders.add(_order(transaction_type=TransactionType.AUTHORISATION, time_completed=YESTERDAY_10))
    gateway.cancel_response = _action(CancelResponse, status="pending")

    assert await order_service.cancel_order(101) == "success"


@pytest.mark.asyncio
async def test_cancel_refused_for_failed_transaction(order_service, orders, gateway):
    orders.add(_order(transaction_status="declined"))

    assert await order_service.cancel_order(101) == "error"
    assert gateway.calls["cancel_transaction"] == []
    assert orders.peek(101).notes[-1] == (
        "Order cancellation failed. Cancellation initiated for an order that can't be cancelled."
    )


@pytest.mark.asyncio
async def test_cancel_declined(order_service, orders, gateway):
    orders.add(_authorised())
    gateway.cancel_response = _action(CancelResponse, status="declined")

    assert await order_service.cancel_order(101) == "error"

    order = orders.peek(101)
    assert order.state == OrderState.AUTHORISED
    assert order.notes[-1] == 'Order cancellation declined with status "declined".'


@pytest.mark.asyncio
async def test_cancel_error_note_carries_processor_message(order_service, orders):
    orders.add(_authorised())

    assert await order_service.cancel_order(101) == "error"

    assert orders.peek(101).notes[-1] == 'Order cancellation failed. Error message: "Bad request".'


# ----------------------------------------------------------------------
# Refund
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_partial_refund_next_day_twice(order_service, orders, gateway):
    orders.add(_order())
    gateway.refund_response = _action(RefundResponse)

    await order_service.refund_order(101, Decimal("50"))
    assert orders.peek(101).state == OrderState.REFUNDED_PARTIAL

    await order_service.refund_order(101, Decimal("50"))
    assert orders.peek(101).state == OrderState.REFUNDED_PARTIAL
    assert gateway.calls["refund_transaction"] == [
        ("t1", {"amount": 50.0, "reference": "Online order"}),
        ("t1", {"amount": 50.0, "reference": "Online order"}),
    ]
    event = order_service.events[-1]
    assert isinstance(event, PaymentRefunded) and event.full is False


@pytest.mark.asyncio
async def test_refund_guard_reads_current_state(order_service, orders, gateway):
    orders.add(_order())
    gateway.refund_response = _action(RefundResponse)
    await order_service.refund_order(101, Decimal("50"))

    # Another request fully refunded the order in the meantime.
    order = orders.peek(101)
    order.state = OrderState.REFUNDED_FULL
    orders.add(order)

    with pytest.raises(PaymentRefundError, match="Transaction has already been fully refunded."):
        await order_service.refund_order(101, Decimal("50"))
    assert len(gateway.calls["refund_transaction"]) == 1


@pytest.mark.asyncio
async def test_full_refund(order_service, orders, gateway):
    orders.add(_order())
    gateway.refund_response = _action(RefundResponse)

    await order_service.refund_order(101, Decimal("100.00"))

    assert orders.peek(101).state == OrderState.REFUNDED_FULL
    assert order_service.events[-1].full is True


@pytest.mark.asyncio
async def test_same_day_partial_refund_is_rejected(order_service, orders, gateway):
    orders.add(_order(time_completed=TODAY_10))

    with pytest.raises(PaymentRefundError) as exc_info:
        await order_service.refund_order(101, Decimal("10"))

    assert exc_info.value.message == "Payment refund failed. Partial refunds are only available on the next day."
    assert orders.peek(101).notes[-1] == exc_info.value.message
    assert gateway.calls["refund_transaction"] == []


@pytest.mark.asyncio
async def test_same_day_full_refund_of_direct_capture(order_service, orders, gateway):
    orders.add(_order(time_completed=TODAY_10))
    gateway.refund_response = _action(RefundResponse)

    await order_service.refund_order(101, Decimal("100"))

    assert orders.peek(101).state == OrderState.REFUNDED_FULL


@pytest.mark.asyncio
async def test_same_day_capture_cannot_be_refunded(order_service, orders):
    orders.add(_order(transaction_type=TransactionType.AUTHORISATION, time_completed=TODAY_10))

    with pytest.raises(PaymentRefundError, match="Captured orders can be refunded the next day."):
        await order_service.refund_order(101, Decimal("100"))


@pytest.mark.asyncio
async def test_partial_refund_of_authorised_order_uses_time_updated(order_service, orders, gateway):
    order = _authorised()
    order.time_updated = TODAY_10
    orders.add(order)

    with pytest.raises(PaymentRefundError, match="Partial refunds are only available on the next day."):
        await order_service.refund_order(101, Decimal("10"))


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"transaction_status": "declined"}, 'Transaction is not in "success" or "settled" status.'),
        ({"state": OrderState.REFUNDED_FULL}, "Transaction has already been fully refunded."),
        ({"state": OrderState.CANCELLED}, "Order has already been cancelled."),
    ],
)
@pytest.mark.asyncio
async def test_refund_blockers(order_service, orders, gateway, overrides, message):
    orders.add(_order(**overrides))

    with pytest.raises(PaymentRefundError) as exc_info:
        await order_service.refund_order(101, Decimal("100"))

    assert exc_info.value.message == f"Payment refund failed. {message}"
    assert gateway.calls["refund_transaction"] == []


@pytest.mark.asyncio
async def test_refund_above_total(order_service, orders, gateway):
    orders.add(_order())

    with pytest.raises(PaymentRefundError) as exc_info:
        await order_service.refund_order(101, Decimal("150"))

    assert exc_info.value.message == 'Payment refund failed. Refund amount "150" is greater than order total "100.00".'
    assert gateway.calls["refund_transaction"] == []


@pytest.mark.asyncio
async def test_refund_declined(order_service, orders, gateway):
    orders.add(_order())
    gateway.refund_response = _action(RefundResponse, status="declined")

    with pytest.raises(PaymentRefundError, match="Check order notes for more details."):
        await order_service.refund_order(101, Decimal("100"))

    order = orders.peek(101)
    assert order.state == OrderState.COMPLETED
    assert order.notes[-1] == 'Payment refund declined with status "declined".'


@pytest.mark.asyncio
async def test_refund_unknown_order(order_service):
    with pytest.raises(OrderNotFoundException):
        await order_service.refund_order(999, Decimal("1"))


# ----------------------------------------------------------------------
# Calendar day rule and notices
# ----------------------------------------------------------------------
def _ts(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


def test_is_day_older_is_calendar_based():
    just_after_midnight = datetime(2024, 5, 15, 0, 1, tzinfo=timezone.utc)
    assert is_day_older(_ts(2024, 5, 14, 23, 59), just_after_midnight) is True

    late_evening = datetime(2024, 5, 15, 23, 59, tzinfo=timezone.utc)
    assert is_day_older(_ts(2024, 5, 15, 0, 1), late_evening) is False
    assert is_day_older(_ts(2024, 5, 14, 0, 1), late_evening) is True


@pytest.mark.parametrize(
    "status, notice",
    [
        ("blocked", "Your payment was blocked."),
        ("tds_failed", "Your payment has been declined due to failed authentication with your bank."),
        ("declined", "Your payment was declined."),
    ],
)
@pytest.mark.asyncio
async def test_fail_notice(order_service, orders, status, notice):
    orders.add(_order(state=OrderState.FAILED, status=OrderStatus.FAILED, transaction_status=status))
    assert await order_service.get_fail_notice(101) == notice


@pytest.mark.asyncio
async def test_no_fail_notice_for_other_gateways(order_service, orders):
    orders.add(_order(state=OrderState.FAILED, status=OrderStatus.FAILED, payment_method="bacs"))
    assert await order_service.get_fail_notice(101) is None


@pytest.mark.asyncio
async def test_no_fail_notice_unless_order_status_failed(order_service, orders):
    orders.add(_order(state=OrderState.FAILED, status=OrderStatus.PENDING, transaction_status="declined"))
    assert await order_service.get_fail_notice(101) is None
