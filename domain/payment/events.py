"""
订单支付领域事件

状态机每次推进订单时记录一条事件（授权、完成、失败、取消、退款），
由应用服务收集并写入结构化日志；领域层不依赖任何基础设施。
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
import uuid


@dataclass
class PaymentEvent:
    order_id: int
    transaction_id: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return type(self).__name__

    def log_data(self) -> dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


@dataclass
class PaymentAuthorised(PaymentEvent):
    """资金已冻结，等待后台 capture。"""


@dataclass
class PaymentCompleted(PaymentEvent):
    pass


@dataclass
class PaymentFailed(PaymentEvent):
    status: Optional[str] = None


@dataclass
class PaymentCancelled(PaymentEvent):
    pass


@dataclass
class PaymentRefunded(PaymentEvent):
    amount: str = ""
    full: bool = False
