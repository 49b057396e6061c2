"""
支付相关仓储接口 - 订单、客户与已保存支付方式的抽象访问
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Order, Customer, PaymentToken


class OrderRepository(ABC):
    """订单仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单（每次调用均读取最新状态）"""
        pass

    @abstractmethod
    async def save(self, order: Order) -> Order:
        """持久化订单（状态、meta、备注）"""
        pass

    @abstractmethod
    async def payment_complete(self, order: Order, transaction_id: Optional[str] = None) -> Order:
        """订单存储的支付完成钩子：标记已支付并触发存储侧副作用"""
        pass


class CustomerRepository(ABC):
    """客户仓储抽象接口"""

    @abstractmethod
    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    async def get_by_processor_customer_id(self, processor_customer_id: str) -> Optional[Customer]:
        """根据支付处理方的客户ID查找本地客户"""
        pass


class PaymentTokenRepository(ABC):
    """已保存支付方式仓储抽象接口"""

    @abstractmethod
    async def get_by_id(self, token_id: int) -> Optional[PaymentToken]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int, gateway_id: str) -> List[PaymentToken]:
        pass

    @abstractmethod
    async def create(self, token: PaymentToken) -> PaymentToken:
        pass

    @abstractmethod
    async def update(self, token: PaymentToken) -> PaymentToken:
        pass

    @abstractmethod
    async def delete(self, token_id: int) -> bool:
        pass
