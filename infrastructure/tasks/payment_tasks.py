"""
Celery tasks for deferred webhook processing.

Webhooks are acknowledged immediately and processed here about 30 seconds
later, after the browser redirect has had its chance to win. Each task
re-authenticates the stored raw body with its hash before touching state.
Failures are logged and dropped; nothing is retried.
"""
from __future__ import annotations

from celery import shared_task
import asyncio

from core.logging_config import get_logger
from infrastructure.bootstrap import build_payment_service
from infrastructure.database import task_session
from infrastructure.tasks.utils.base_task import BaseTask


logger = get_logger(__name__)


async def _run_scheduled(method: str, webhook_data: str, hash: str) -> bool:
    async with task_session() as session:
        service = build_payment_service(session)
        try:
            return await getattr(service, method)(webhook_data, hash)
        finally:
            await service.aclose()


@shared_task(name="payments.process_scheduled_order", bind=True, base=BaseTask)
def task_process_scheduled_order(self, webhook_data: str, hash: str):
    processed = asyncio.run(_run_scheduled("run_scheduled_order", webhook_data, hash))
    logger.info("scheduled_order_task_done", processed=processed)
    return {"processed": processed}


@shared_task(name="payments.process_scheduled_payment_method", bind=True, base=BaseTask)
def task_process_scheduled_payment_method(self, webhook_data: str, hash: str):
    processed = asyncio.run(_run_scheduled("run_scheduled_payment_method", webhook_data, hash))
    logger.info("scheduled_payment_method_task_done", processed=processed)
    return {"processed": processed}
