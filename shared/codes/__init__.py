"""
业务码（跨层共享：Domain / Core / API）。

通用码保留在 BusinessCode，支付处理相关的码与远端状态分组在
`shared.codes.payment_codes`，这里统一导出，调用方只需 `from shared.codes import ...`。
"""
from enum import IntEnum

from .payment_codes import (
    ACTION_SUCCESS_STATUSES,
    PAYMENT_METHOD_SUCCESS_STATUSES,
    PROCESSABLE_ORDER_STATUSES,
    THREE_D_SECURE_FAILURE_STATUSES,
    TRANSACTION_SUCCESS_STATUSES,
    PaymentCode,
)


class BusinessCode(IntEnum):
    """Framework level codes; anything payment specific lives in PaymentCode."""

    SUCCESS = 0

    # 请求参数
    PARAM_VALIDATION_ERROR = 10003

    # HTTP 层透传
    NOT_FOUND = 20006
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # 系统
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003


def is_payment_code(code: int) -> bool:
    """6xxxx 段为支付处理码。"""
    return 60000 <= int(code) < 70000


__all__ = [
    "BusinessCode",
    "PaymentCode",
    "is_payment_code",
    "ACTION_SUCCESS_STATUSES",
    "PAYMENT_METHOD_SUCCESS_STATUSES",
    "PROCESSABLE_ORDER_STATUSES",
    "THREE_D_SECURE_FAILURE_STATUSES",
    "TRANSACTION_SUCCESS_STATUSES",
]
