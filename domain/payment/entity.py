"""
支付领域实体 - 订单（交易状态聚合）、客户与已保存支付方式

订单的交易状态保存在 meta 字典中（与订单存储的属性包一致），
实体只提供类型化的读写入口。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from enum import Enum

from domain.common.exceptions import DomainValidationException


class OrderStatus(str, Enum):
    """订单存储对外可见的状态"""
    PENDING = "pending"
    PROCESSING = "processing"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class OrderState(str, Enum):
    """支付处理内部状态（与订单状态独立）"""
    NONE = ""
    AUTHORISED = "authorised"
    EXECUTED = "executed"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED_PARTIAL = "refunded_partial"
    REFUNDED_FULL = "refunded_full"


class TransactionType(str, Enum):
    CAPTURE = "capture"
    AUTHORISATION = "authorisation"


class OrderMeta(str, Enum):
    """Keys of the order meta bag owned by the payment integration."""
    TRANSACTION_TYPE = "_transaction_type"
    ORDER_STATE = "_order_state"
    TRANSACTION_STATUS = "_transaction_status"
    TIME_UPDATED = "_order_time_updated"
    TIME_COMPLETED = "_order_time_completed"
    TRANSACTION_PAYMENT_METHOD = "_transaction_payment_method"
    DECLINE_REASON = "_transaction_decline_reason"


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class Order:
    """
    订单聚合根（支付视角）

    业务规则：
    1. status 为订单存储的外部状态，state 为支付处理内部状态
    2. time_updated / time_completed 为远端交易 created 时间（epoch 秒）
    3. notes 记录每一次对运营可见的决策
    """

    id: int
    order_key: str
    total: Decimal
    currency: str = "GBP"
    status: OrderStatus = OrderStatus.PENDING
    customer_id: Optional[int] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    meta: dict = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)
    payment_token_ids: list[int] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.total, Decimal):
            self.total = Decimal(str(self.total))
        if self.total < 0:
            raise DomainValidationException(f"Order total must not be negative: {self.total}", field="total")
        self.status = OrderStatus(self.status)
        if self.meta is None:
            self.meta = {}
        if self.notes is None:
            self.notes = []
        if self.payment_token_ids is None:
            self.payment_token_ids = []

    # Meta bag
    def get_meta(self, key: OrderMeta | str, default: Any = "") -> Any:
        return self.meta.get(OrderMeta(key).value if isinstance(key, OrderMeta) else key, default)

    def update_meta(self, key: OrderMeta | str, value: Any) -> None:
        self.meta[OrderMeta(key).value if isinstance(key, OrderMeta) else key] = value

    def delete_meta(self, key: OrderMeta | str) -> None:
        self.meta.pop(OrderMeta(key).value if isinstance(key, OrderMeta) else key, None)

    def add_note(self, note: str) -> None:
        self.notes.append(note)

    def add_payment_token(self, token_id: int) -> None:
        if token_id not in self.payment_token_ids:
            self.payment_token_ids.append(token_id)

    # Typed accessors
    @property
    def transaction_type(self) -> str:
        return self.get_meta(OrderMeta.TRANSACTION_TYPE)

    @transaction_type.setter
    def transaction_type(self, value: TransactionType | str) -> None:
        self.update_meta(OrderMeta.TRANSACTION_TYPE, TransactionType(value).value)

    @property
    def state(self) -> OrderState:
        try:
            return OrderState(self.get_meta(OrderMeta.ORDER_STATE))
        except ValueError:
            return OrderState.NONE

    @state.setter
    def state(self, value: OrderState | str) -> None:
        self.update_meta(OrderMeta.ORDER_STATE, OrderState(value).value)

    @property
    def transaction_status(self) -> str:
        return self.get_meta(OrderMeta.TRANSACTION_STATUS)

    @transaction_status.setter
    def transaction_status(self, value: str) -> None:
        self.update_meta(OrderMeta.TRANSACTION_STATUS, value)

    @property
    def time_updated(self) -> int:
        return _to_int(self.get_meta(OrderMeta.TIME_UPDATED, 0))

    @time_updated.setter
    def time_updated(self, value: int) -> None:
        self.update_meta(OrderMeta.TIME_UPDATED, _to_int(value))

    @property
    def time_completed(self) -> int:
        return _to_int(self.get_meta(OrderMeta.TIME_COMPLETED, 0))

    @time_completed.setter
    def time_completed(self, value: int) -> None:
        self.update_meta(OrderMeta.TIME_COMPLETED, _to_int(value))

    @property
    def decline_reason(self) -> str:
        return self.get_meta(OrderMeta.DECLINE_REASON)

    def mark_paid(self, transaction_id: Optional[str] = None) -> None:
        """订单存储的支付完成钩子：外部状态转为 processing"""
        if transaction_id:
            self.transaction_id = transaction_id
        self.status = OrderStatus.PROCESSING
        self.paid_at = datetime.now(timezone.utc)


@dataclass
class Customer:
    id: int
    email: Optional[str] = None
    processor_customer_id: Optional[str] = None


@dataclass
class PaymentToken:
    """已保存的卡（token 即远端 card_id）"""

    id: Optional[int]
    token: str
    user_id: int
    gateway_id: str
    card_type: str = ""
    last4: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    is_default: bool = False

    def validate(self) -> bool:
        """Token is usable only with every card field filled in."""
        if not self.token or not self.card_type:
            return False
        if len(self.last4) != 4 or not self.last4.isdigit():
            return False
        if len(self.expiry_month) != 2 or len(self.expiry_year) != 4:
            return False
        return True
