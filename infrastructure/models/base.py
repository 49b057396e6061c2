"""
数据库模型基类（SQLAlchemy 2.0 风格）

约束命名统一，便于迁移脚本比对；更新时间由 TimestampMixin 提供。
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class TimestampMixin:
    """行级更新时间（UTC）"""

    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


metadata = Base.metadata
