"""
订单、客户与支付方式数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON, Boolean, Index
)
from .base import Base, TimestampMixin


class OrderModel(TimestampMixin, Base):
    """
    订单数据库模型

    交易状态存放在 meta JSON 中，业务规则在 domain.payment.entity.Order
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_key = Column(String(64), nullable=False, comment="订单密钥（组合引用校验）")
    status = Column(String(32), nullable=False, default="pending", index=True, comment="订单对外状态")
    total = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单总额")
    currency = Column(String(3), nullable=False, default="GBP", comment="货币代码 ISO-4217")
    customer_id = Column(Integer, nullable=True, index=True, comment="下单用户ID")
    payment_method = Column(String(50), nullable=True, comment="支付网关ID")
    transaction_id = Column(String(100), nullable=True, index=True, comment="远端交易ID")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    meta = Column(JSON, nullable=False, default=dict, comment="订单属性包")
    notes = Column(JSON, nullable=False, default=list, comment="订单备注")
    payment_token_ids = Column(JSON, nullable=False, default=list)


class CustomerModel(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=True)
    processor_customer_id = Column(String(100), nullable=True, unique=True, index=True, comment="支付处理方客户ID")


class PaymentTokenModel(Base):
    __tablename__ = "payment_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(100), nullable=False, comment="远端 card_id")
    user_id = Column(Integer, nullable=False, index=True)
    gateway_id = Column(String(50), nullable=False)
    card_type = Column(String(32), nullable=False, default="")
    last4 = Column(String(4), nullable=False, default="")
    expiry_month = Column(String(2), nullable=False, default="")
    expiry_year = Column(String(4), nullable=False, default="")
    is_default = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_payment_tokens_user_gateway", "user_id", "gateway_id"),
    )
