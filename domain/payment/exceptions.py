"""
支付领域异常 - 入站数据、订单交易状态、支付方式与延迟调度

Messages are operator facing and end up in logs and order notes verbatim.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes import PaymentCode


class IncomingDataError(BusinessException):
    """Redirect or webhook data failed authentication or validation."""

    error_type = "IncomingDataError"

    def __init__(self, message: str, *, code: int = PaymentCode.INCOMING_DATA_INVALID, details: Optional[dict] = None):
        super().__init__(code, message, details=details)


class IncomingSignatureError(IncomingDataError):
    error_type = "IncomingSignatureError"

    def __init__(self, message: str, *, channel: str):
        super().__init__(message, code=PaymentCode.SIGNATURE_ERROR, details={"channel": channel})


class InvalidReferenceError(BusinessException):
    """Composite reference does not decompose into a usable id."""

    error_type = "InvalidReference"

    def __init__(self, message: str):
        super().__init__(PaymentCode.INCOMING_REFERENCE_INVALID, message)


class OrderNotFoundException(BusinessException):
    error_type = "OrderNotFound"

    def __init__(self, order_id: int | str):
        super().__init__(
            PaymentCode.ORDER_NOT_FOUND,
            f"Failed to find order. Order ID: {order_id}.",
            details={"order_id": order_id},
        )


class CustomerNotFoundException(BusinessException):
    error_type = "CustomerNotFound"

    def __init__(self, message: str, *, customer_id: int | str | None = None):
        super().__init__(
            PaymentCode.CUSTOMER_NOT_FOUND,
            message,
            details={"customer_id": customer_id} if customer_id is not None else None,
        )


class OrderProcessingError(BusinessException):
    """Order cannot take the incoming transaction update."""

    error_type = "OrderProcessingError"

    def __init__(self, message: str, *, order_id: int | None = None):
        super().__init__(
            PaymentCode.ORDER_NOT_PROCESSABLE,
            message,
            details={"order_id": order_id} if order_id is not None else None,
        )


class GatewayRequestError(BusinessException):
    """Remote processor call returned an error-shaped response."""

    error_type = "GatewayRequestError"

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(PaymentCode.PROVIDER_ERROR, message, details=details)


class PaymentRefundError(BusinessException):
    error_type = "PaymentRefundError"

    def __init__(self, message: str, *, order_id: int | None = None):
        super().__init__(
            PaymentCode.REFUND_FAILED,
            message,
            details={"order_id": order_id} if order_id is not None else None,
        )


class PaymentMethodError(BusinessException):
    error_type = "PaymentMethodError"

    def __init__(self, message: str, *, code: int = PaymentCode.PAYMENT_METHOD_ERROR):
        super().__init__(code, message)


class PaymentTokenNotFoundException(PaymentMethodError):
    error_type = "PaymentTokenNotFound"

    def __init__(self):
        super().__init__("Token not found.", code=PaymentCode.TOKEN_NOT_FOUND)


class SchedulingError(BusinessException):
    error_type = "SchedulingError"

    def __init__(self, message: str = "Failed to schedule action.", *, hook: str | None = None):
        super().__init__(
            PaymentCode.SCHEDULE_FAILED,
            message,
            details={"hook": hook} if hook else None,
        )
