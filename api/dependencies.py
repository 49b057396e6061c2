"""
API依赖项 - 支付服务装配
"""
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from application.services.payment_service import PaymentService
from core.settings import ProcessorSettings, processor_settings
from infrastructure.bootstrap import build_payment_service
from infrastructure.database import get_session


def get_processor_settings() -> ProcessorSettings:
    return processor_settings


async def get_payment_service(
    session: AsyncSession = Depends(get_session),
    settings: ProcessorSettings = Depends(get_processor_settings),
) -> AsyncGenerator[PaymentService, None]:
    """每个请求一个服务实例，结束时关闭处理方 HTTP 客户端。"""
    service = build_payment_service(session, settings=settings)
    try:
        yield service
    finally:
        await service.aclose()
