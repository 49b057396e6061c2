"""
订单/客户/支付方式仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from domain.payment.entity import Order, OrderStatus, Customer, PaymentToken
from domain.payment.repository import (
    OrderRepository,
    CustomerRepository,
    PaymentTokenRepository,
)
from infrastructure.models.order import OrderModel, CustomerModel, PaymentTokenModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            order_key=model.order_key,
            total=Decimal(str(model.total)),
            currency=model.currency,
            status=OrderStatus(model.status),
            customer_id=model.customer_id,
            payment_method=model.payment_method,
            transaction_id=model.transaction_id,
            paid_at=model.paid_at,
            meta=dict(model.meta or {}),
            notes=list(model.notes or []),
            payment_token_ids=list(model.payment_token_ids or []),
        )

    def _apply(self, model: OrderModel, entity: Order) -> None:
        model.status = entity.status.value
        model.transaction_id = entity.transaction_id
        model.paid_at = entity.paid_at
        # JSON 列整体替换，确保变更被追踪
        model.meta = dict(entity.meta)
        model.notes = list(entity.notes)
        model.payment_token_ids = list(entity.payment_token_ids)

    async def _get_model(self, order_id: int) -> Optional[OrderModel]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单（绕过身份映射缓存，读取最新状态）"""
        db_order = await self._get_model(order_id)
        return self._to_entity(db_order) if db_order else None

    async def save(self, order: Order) -> Order:
        db_order = await self._get_model(order.id)
        if db_order is None:
            db_order = OrderModel(
                id=order.id,
                order_key=order.order_key,
                total=order.total,
                currency=order.currency,
                customer_id=order.customer_id,
                payment_method=order.payment_method,
            )
            self.session.add(db_order)
        self._apply(db_order, order)
        await self.session.commit()
        return order

    async def payment_complete(self, order: Order, transaction_id: Optional[str] = None) -> Order:
        order.mark_paid(transaction_id)
        await self.save(order)
        logger.info("order_payment_complete", order_id=order.id, transaction_id=order.transaction_id)
        return order


class SQLAlchemyCustomerRepository(CustomerRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: CustomerModel) -> Customer:
        return Customer(
            id=model.id,
            email=model.email,
            processor_customer_id=model.processor_customer_id,
        )

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        db_customer = await self.session.get(CustomerModel, customer_id)
        return self._to_entity(db_customer) if db_customer else None

    async def get_by_processor_customer_id(self, processor_customer_id: str) -> Optional[Customer]:
        result = await self.session.execute(
            select(CustomerModel).where(CustomerModel.processor_customer_id == processor_customer_id).limit(1)
        )
        db_customer = result.scalar_one_or_none()
        return self._to_entity(db_customer) if db_customer else None


class SQLAlchemyPaymentTokenRepository(PaymentTokenRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: PaymentTokenModel) -> PaymentToken:
        return PaymentToken(
            id=model.id,
            token=model.token,
            user_id=model.user_id,
            gateway_id=model.gateway_id,
            card_type=model.card_type,
            last4=model.last4,
            expiry_month=model.expiry_month,
            expiry_year=model.expiry_year,
            is_default=model.is_default,
        )

    async def get_by_id(self, token_id: int) -> Optional[PaymentToken]:
        db_token = await self.session.get(PaymentTokenModel, token_id)
        return self._to_entity(db_token) if db_token else None

    async def list_by_user(self, user_id: int, gateway_id: str) -> List[PaymentToken]:
        result = await self.session.execute(
            select(PaymentTokenModel)
            .where(PaymentTokenModel.user_id == user_id, PaymentTokenModel.gateway_id == gateway_id)
            .order_by(PaymentTokenModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, token: PaymentToken) -> PaymentToken:
        db_token = PaymentTokenModel(
            token=token.token,
            user_id=token.user_id,
            gateway_id=token.gateway_id,
            card_type=token.card_type,
            last4=token.last4,
            expiry_month=token.expiry_month,
            expiry_year=token.expiry_year,
            is_default=token.is_default,
        )
        self.session.add(db_token)
        await self.session.commit()
        logger.info("payment_token_created", token_id=db_token.id, user_id=token.user_id)
        return self._to_entity(db_token)

    async def update(self, token: PaymentToken) -> PaymentToken:
        db_token = await self.session.get(PaymentTokenModel, token.id)
        if db_token is None:
            return token
        for name in ("card_type", "last4", "expiry_month", "expiry_year", "is_default"):
            setattr(db_token, name, getattr(token, name))
        await self.session.commit()
        return self._to_entity(db_token)

    async def delete(self, token_id: int) -> bool:
        result = await self.session.execute(delete(PaymentTokenModel).where(PaymentTokenModel.id == token_id))
        await self.session.commit()
        return bool(result.rowcount)
