"""
Composition root shared by the API and the Celery workers.

Wires settings, the processor client, the Celery dispatcher and the
SQLAlchemy stores into the application services.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.payment_gateway import PaymentGateway
from application.ports.scheduler import DeferredDispatch
from application.services.incoming_data_service import IncomingDataService
from application.services.order_service import OrderService
from application.services.payment_method_service import PaymentMethodService
from application.services.payment_service import PaymentService
from core.settings import ProcessorSettings, processor_settings
from infrastructure.external.payments import get_payment_gateway
from infrastructure.repositories.payment_repository import (
    SQLAlchemyCustomerRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyPaymentTokenRepository,
)


def build_payment_service(
    session: AsyncSession,
    *,
    settings: Optional[ProcessorSettings] = None,
    gateway: Optional[PaymentGateway] = None,
    scheduler: Optional[DeferredDispatch] = None,
) -> PaymentService:
    settings = settings or processor_settings
    gateway = gateway or get_payment_gateway(settings)
    if scheduler is None:
        from infrastructure.tasks.utils.dispatcher import CeleryDeferredDispatcher
        scheduler = CeleryDeferredDispatcher(settings.schedule.delay_seconds, settings.schedule.queue)

    orders = SQLAlchemyOrderRepository(session)
    order_service = OrderService(
        orders,
        gateway,
        scheduler,
        gateway_id=settings.gateway_id,
        payment_reference=settings.payment_reference,
        scheduled_hook=settings.scheduled_order_hook,
    )
    payment_method_service = PaymentMethodService(
        SQLAlchemyCustomerRepository(session),
        SQLAlchemyPaymentTokenRepository(session),
        orders,
        gateway,
        scheduler,
        gateway_id=settings.gateway_id,
        tokenization_enabled=settings.tokenization_enabled,
        scheduled_hook=settings.scheduled_payment_method_hook,
    )
    return PaymentService(IncomingDataService(settings.app_key), order_service, payment_method_service)
